"""
Network room ("net") membership.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Set

from . import events as ev
from .events import Outbound
from .registry import Role

logger = logging.getLogger(__name__)


@dataclass
class NetworkRoom:
    """A named net and the connections currently in it."""
    name: str
    members: Set[str] = field(default_factory=set)
    created_at: float = field(default_factory=time.time)

    @property
    def member_count(self) -> int:
        return len(self.members)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "members": sorted(self.members),
            "member_count": self.member_count,
            "created_at": self.created_at,
        }


# role -> (joined event, left event, id field in the payload)
_NOTICES = {
    Role.UNIT: (ev.UNIT_JOINED, ev.UNIT_LEFT, "unitid"),
    Role.SERVER: (ev.SERVER_JOINED, ev.SERVER_LEFT, "serverid"),
}


class RoomRouter:
    """
    Maintains net membership.

    Rooms appear on first join and are kept when they empty. Join and leave
    notices go to every connection unless ``scoped`` is set, in which case
    only the room's members (and the party joining or leaving) get them.
    """

    def __init__(self, scoped: bool = False):
        self.scoped = scoped
        self._rooms: Dict[str, NetworkRoom] = {}

    def join(
        self,
        connection_id: str,
        room_name: Any,
        role: Role = Role.UNIT,
        participant_id: Any = None,
    ) -> List[Outbound]:
        """Add a connection to a net and announce it."""
        joined_event, _, id_field = _NOTICES[role]
        name = _room_key(room_name)
        if name is not None:
            room = self._rooms.get(name)
            if room is None:
                room = self._rooms[name] = NetworkRoom(name=name)
                logger.debug(f"Created net: {name}")
            room.members.add(connection_id)
            logger.debug(f"{connection_id} joined net {name} ({room.member_count} members)")

        payload = {id_field: participant_id, "netname": room_name}
        return [Outbound(joined_event, payload, self._recipients(name, connection_id))]

    def leave(
        self,
        connection_id: str,
        room_name: Any,
        role: Role = Role.UNIT,
        participant_id: Any = None,
    ) -> List[Outbound]:
        """Remove a connection from a net and announce it. Absent members are fine."""
        _, left_event, id_field = _NOTICES[role]
        name = _room_key(room_name)
        recipients = self._recipients(name, connection_id)
        room = self._rooms.get(name) if name is not None else None
        if room is not None:
            room.members.discard(connection_id)
            logger.debug(f"{connection_id} left net {name} ({room.member_count} members)")

        payload = {id_field: participant_id, "netname": room_name}
        return [Outbound(left_event, payload, recipients)]

    def drop(self, connection_id: str) -> List[str]:
        """Silently remove a closed connection from every net. Returns the nets it was in."""
        left = []
        for room in self._rooms.values():
            if connection_id in room.members:
                room.members.discard(connection_id)
                left.append(room.name)
        return left

    def members(self, room_name: str) -> FrozenSet[str]:
        room = self._rooms.get(room_name)
        return frozenset(room.members) if room else frozenset()

    def rooms_of(self, connection_id: str) -> List[str]:
        return [r.name for r in self._rooms.values() if connection_id in r.members]

    def rooms(self) -> List[NetworkRoom]:
        return list(self._rooms.values())

    def get(self, room_name: str) -> Optional[NetworkRoom]:
        return self._rooms.get(room_name)

    def _recipients(self, name: Optional[str], connection_id: str) -> Optional[FrozenSet[str]]:
        if not self.scoped or name is None:
            return None
        return self.members(name) | {connection_id}


def _room_key(room_name: Any) -> Optional[str]:
    """Net names arrive unvalidated; anything but a non-empty string has no room."""
    if isinstance(room_name, str) and room_name:
        return room_name
    return None
