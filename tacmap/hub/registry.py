"""
Connection registry - which sessions are open and what they claim to be.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Role a participant declares after connecting."""
    SERVER = "server"
    UNIT = "unit"
    UNKNOWN = "unknown"


@dataclass
class Connection:
    """A live session on the hub."""
    connection_id: str
    transport: Any
    role: Role = Role.UNKNOWN
    connected_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "connection_id": self.connection_id,
            "role": self.role.value,
            "connected_at": self.connected_at,
        }


def new_connection_id() -> str:
    """Opaque session identifier handed to a freshly accepted socket."""
    return uuid.uuid4().hex[:20]


class ConnectionRegistry:
    """
    Tracks open connections and their declared role.

    The registry is the only place connections are created or destroyed.
    Closing is idempotent: a close for an unknown id is silently ignored.
    """

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def open(self, transport: Any, connection_id: Optional[str] = None) -> str:
        """Register a new connection and return its id."""
        connection_id = connection_id or new_connection_id()
        while connection_id in self._connections:
            connection_id = new_connection_id()

        self._connections[connection_id] = Connection(
            connection_id=connection_id,
            transport=transport,
        )
        logger.debug(f"Connection {connection_id} opened, total: {len(self)}")
        return connection_id

    def close(self, connection_id: str) -> Optional[Connection]:
        """Remove a connection. Returns the removed record, or None if unknown."""
        connection = self._connections.pop(connection_id, None)
        if connection is not None:
            logger.debug(f"Connection {connection_id} closed, total: {len(self)}")
        return connection

    def announce_role(self, connection_id: str, role: Role) -> bool:
        """Record the declared role. Returns False for unknown connections."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        connection.role = role
        return True

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def ids(self) -> List[str]:
        return list(self._connections.keys())

    def role_counts(self) -> Dict[str, int]:
        counts = {role.value: 0 for role in Role}
        for connection in self._connections.values():
            counts[connection.role.value] += 1
        return counts

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self) -> Iterator[Connection]:
        # Snapshot so a close during fan-out can't break iteration
        return iter(list(self._connections.values()))
