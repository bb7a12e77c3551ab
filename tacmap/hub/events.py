"""
Event names and frame shapes exchanged over the hub socket.

Every frame, in both directions, is a JSON object::

    {"event": "<name>", "data": <payload>}

Only the envelope is checked. Payloads are passed through untouched and
consumers have to tolerate missing fields.
"""

from dataclasses import dataclass
from typing import Any, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


# ============================================================================
# Inbound events
# ============================================================================

SERVER_CONNECTED = "server connected"
UNIT_CONNECTED = "unit connected"
SEND_MSG = "send msg"
UNIT_JOIN = "unit join"
SERVER_JOIN = "server join"
UNIT_LEAVE = "unit leave"
SERVER_LEAVE = "server leave"
ADD_ENTITY = "add entity"
SET_MISSION = "set mission"
MISSION_RUNNING = "mission running"
MISSION_STOPPED = "mission stopped"
MISSION_TIME = "mission time"


# ============================================================================
# Outbound events
# ============================================================================

CONNECTION = "connection"
INIT_SERVER = "init server"
# UNIT_CONNECTED is echoed back under the same name
MSG_SENT = "msg sent"
UNIT_JOINED = "unit joined"
SERVER_JOINED = "server joined"
UNIT_LEFT = "unit left"
SERVER_LEFT = "server left"
# ADD_ENTITY and SET_MISSION are echoed back under the same name
START_MISSION = "start mission"
STOP_MISSION = "stop mission"
SET_TIME = "set time"
ERROR = "error"

SOCKET_READY_MESSAGE = "Msg Socket Ready"


class InvalidFrame(ValueError):
    """Raised when an inbound frame has no usable envelope."""


class Frame(BaseModel):
    """Envelope of an inbound socket frame."""
    model_config = ConfigDict(extra="ignore")

    event: str = Field(..., min_length=1, description="Event name")
    data: Any = Field(default=None, description="Opaque payload")

    @classmethod
    def parse(cls, raw: Any) -> "Frame":
        """Validate a decoded JSON value as a frame envelope."""
        if not isinstance(raw, dict):
            raise InvalidFrame("Frame must be a JSON object")
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise InvalidFrame(f"Invalid frame: {e.errors()[0]['msg']}") from e


@dataclass(frozen=True)
class Outbound:
    """
    A frame the hub wants delivered.

    ``recipients`` of None means every live connection; otherwise only the
    listed connection ids receive it. ``relay`` marks a participant payload
    passed through untouched.
    """
    event: str
    data: Any = None
    recipients: Optional[FrozenSet[str]] = None
    relay: bool = False


def field_of(payload: Any, name: str) -> Any:
    """Read a payload field without assuming the payload is a dict."""
    if isinstance(payload, dict):
        return payload.get(name)
    return None
