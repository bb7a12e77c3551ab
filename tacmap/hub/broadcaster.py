"""
Event fan-out to connected participants.
"""

import logging
from typing import Any, FrozenSet, Iterable, Optional

from .events import Outbound
from .registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)


class EventBroadcaster:
    """
    Delivers outbound frames over each connection's transport.

    A failed send is logged and skipped; the connection stays registered
    until its transport reports the close.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry
        self.frames_sent = 0
        self.messages_relayed = 0

    async def publish(
        self,
        event: str,
        data: Any = None,
        recipients: Optional[FrozenSet[str]] = None,
    ) -> int:
        """Send one frame to every connection, or only to ``recipients``. Returns deliveries."""
        frame = {"event": event, "data": data}
        delivered = 0
        for connection in self._targets(recipients):
            if await self._send(connection, frame):
                delivered += 1
        return delivered

    async def relay(self, event: str, payload: Any, recipients: Optional[FrozenSet[str]] = None) -> int:
        """Re-emit a participant's payload unchanged."""
        delivered = await self.publish(event, payload, recipients)
        self.messages_relayed += delivered
        return delivered

    async def deliver(self, outbound: Iterable[Outbound]) -> int:
        """Hand each frame to ``relay`` or ``publish``, in order."""
        delivered = 0
        for item in outbound:
            if item.relay:
                delivered += await self.relay(item.event, item.data, item.recipients)
            else:
                delivered += await self.publish(item.event, item.data, item.recipients)
        return delivered

    async def send(self, connection_id: str, event: str, data: Any = None) -> bool:
        """Send a frame to a single connection."""
        connection = self.registry.get(connection_id)
        if connection is None:
            return False
        return await self._send(connection, {"event": event, "data": data})

    def _targets(self, recipients: Optional[FrozenSet[str]]) -> Iterable[Connection]:
        if recipients is None:
            return iter(self.registry)
        return [c for c in self.registry if c.connection_id in recipients]

    async def _send(self, connection: Connection, frame: dict) -> bool:
        try:
            await connection.transport.send_json(frame)
        except Exception as e:
            logger.warning(f"Send to {connection.connection_id} failed: {e}")
            return False
        self.frames_sent += 1
        return True
