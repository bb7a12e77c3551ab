"""
The coordination hub.

Ties the connection registry, mission store, room router and broadcaster
together and maps inbound socket events onto them. Handlers apply their
mutation synchronously and only then await delivery, so no other handler can
observe a half-applied change.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List

from . import events as ev
from .broadcaster import EventBroadcaster
from .events import Frame, InvalidFrame, Outbound, field_of
from .mission import MissionStore
from .registry import ConnectionRegistry, Role
from .rooms import RoomRouter

logger = logging.getLogger(__name__)

Handler = Callable[[str, Any], List[Outbound]]


class Hub:
    """
    Session coordination and state replication hub.

    Example:
        >>> hub = Hub()
        >>> cid = await hub.connect(websocket)
        >>> await hub.receive(cid, {"event": "unit connected", "data": {"id": "u1"}})
        >>> await hub.disconnect(cid)
    """

    def __init__(self, scoped_delivery: bool = False):
        self.registry = ConnectionRegistry()
        self.rooms = RoomRouter(scoped=scoped_delivery)
        self.mission = MissionStore()
        self.broadcaster = EventBroadcaster(self.registry)
        self.started_at = time.time()
        self.events_handled = 0

        self._handlers: Dict[str, Handler] = {
            ev.SERVER_CONNECTED: self._on_server_connected,
            ev.UNIT_CONNECTED: self._on_unit_connected,
            ev.SEND_MSG: self._on_send_msg,
            ev.UNIT_JOIN: self._joiner(Role.UNIT, "unitid"),
            ev.SERVER_JOIN: self._joiner(Role.SERVER, "serverid"),
            ev.UNIT_LEAVE: self._leaver(Role.UNIT, "unitid"),
            ev.SERVER_LEAVE: self._leaver(Role.SERVER, "serverid"),
            ev.ADD_ENTITY: self._on_add_entity,
            ev.SET_MISSION: self._on_set_mission,
            ev.MISSION_RUNNING: lambda cid, data: self.mission.mission_running(),
            ev.MISSION_STOPPED: lambda cid, data: self.mission.mission_stopped(),
            ev.MISSION_TIME: lambda cid, data: self.mission.mission_time(data),
        }

    @property
    def scoped_delivery(self) -> bool:
        return self.rooms.scoped

    # ========================================================================
    # Connection lifecycle
    # ========================================================================

    async def connect(self, transport: Any) -> str:
        """Register an accepted socket and tell it its own id."""
        connection_id = self.registry.open(transport)
        logger.info(f"Socket connected: {connection_id}")
        await self.broadcaster.send(connection_id, ev.CONNECTION, {
            "message": ev.SOCKET_READY_MESSAGE,
            "socketid": connection_id,
        })
        return connection_id

    async def disconnect(self, connection_id: str) -> bool:
        """Forget a closed socket. Safe to call for unknown or already closed ids."""
        connection = self.registry.close(connection_id)
        if connection is None:
            return False
        nets = self.rooms.drop(connection_id)
        logger.info(
            f"Socket disconnected: {connection_id} ({connection.role.value})"
            + (f", left nets {', '.join(nets)}" if nets else "")
        )
        return True

    # ========================================================================
    # Inbound events
    # ========================================================================

    async def receive(self, connection_id: str, raw: Any) -> int:
        """
        Handle one inbound frame from a connection.

        ``raw`` may be the decoded JSON value or the text of the frame. A
        frame without a valid envelope gets an ``error`` frame back and is
        otherwise dropped. Returns the number of frames delivered.
        """
        if connection_id not in self.registry:
            logger.debug(f"Dropping frame from closed connection {connection_id}")
            return 0

        try:
            frame = Frame.parse(_decode(raw))
        except InvalidFrame as e:
            logger.warning(f"Bad frame from {connection_id}: {e}")
            await self.broadcaster.send(connection_id, ev.ERROR, {"message": str(e)})
            return 0

        return await self.dispatch(connection_id, frame.event, frame.data)

    async def dispatch(self, connection_id: str, event: str, data: Any = None) -> int:
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"Ignoring unknown event '{event}' from {connection_id}")
            return 0

        outbound = handler(connection_id, data)
        self.events_handled += 1
        return await self.broadcaster.deliver(outbound)

    # ========================================================================
    # Handlers (synchronous: mutate, then hand back frames to deliver)
    # ========================================================================

    def _on_server_connected(self, connection_id: str, data: Any) -> List[Outbound]:
        logger.info(
            f"Server connected to socket: {field_of(data, 'socketid')}, "
            f"mission: {field_of(data, 'missionid')}"
        )
        self.registry.announce_role(connection_id, Role.SERVER)
        return self.mission.server_announced(
            field_of(data, "missionid"),
            field_of(data, "missiondata"),
        )

    def _on_unit_connected(self, connection_id: str, data: Any) -> List[Outbound]:
        logger.info(
            f"Unit connected: {field_of(data, 'id')}, mission: {self.mission.state.mission_id}"
        )
        self.registry.announce_role(connection_id, Role.UNIT)
        return self.mission.unit_announced()

    def _on_send_msg(self, connection_id: str, data: Any) -> List[Outbound]:
        message = field_of(data, "message")
        net = field_of(message, "net")
        logger.info(f"Send msg from {field_of(message, 'unit')} to {net}")

        recipients = None
        if self.scoped_delivery and isinstance(net, str) and net:
            recipients = self.rooms.members(net) | {connection_id}
        return [Outbound(ev.MSG_SENT, data, recipients, relay=True)]

    def _on_add_entity(self, connection_id: str, data: Any) -> List[Outbound]:
        logger.info(f"Add entity: {field_of(data, '_id')}")
        return [Outbound(ev.ADD_ENTITY, data, relay=True)]

    def _on_set_mission(self, connection_id: str, data: Any) -> List[Outbound]:
        return self.mission.set_mission(
            field_of(data, "missionid"),
            field_of(data, "missiondata"),
        )

    def _joiner(self, role: Role, id_field: str) -> Handler:
        def handle(connection_id: str, data: Any) -> List[Outbound]:
            return self.rooms.join(
                connection_id,
                field_of(data, "netname"),
                role=role,
                participant_id=field_of(data, id_field),
            )
        return handle

    def _leaver(self, role: Role, id_field: str) -> Handler:
        def handle(connection_id: str, data: Any) -> List[Outbound]:
            return self.rooms.leave(
                connection_id,
                field_of(data, "netname"),
                role=role,
                participant_id=field_of(data, id_field),
            )
        return handle

    # ========================================================================
    # Introspection
    # ========================================================================

    def status(self) -> dict:
        state = self.mission.state
        return {
            "connections": len(self.registry),
            "rooms": len(self.rooms.rooms()),
            "mission": {"missionid": state.mission_id, "running": state.running},
        }

    def stats(self) -> dict:
        return {
            "uptime_seconds": time.time() - self.started_at,
            "connections": len(self.registry),
            "roles": self.registry.role_counts(),
            "events_handled": self.events_handled,
            "frames_sent": self.broadcaster.frames_sent,
            "messages_relayed": self.broadcaster.messages_relayed,
            "scoped_delivery": self.scoped_delivery,
            "sessions": [connection.to_dict() for connection in self.registry],
            "rooms": [room.to_dict() for room in self.rooms.rooms()],
            "mission": self.mission.snapshot().to_dict(),
        }


def _decode(raw: Any) -> Any:
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidFrame(f"Frame is not valid JSON: {e}") from e
    return raw
