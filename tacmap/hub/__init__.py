"""
Coordination hub: connections, mission state, nets and event fan-out.
"""

from .broadcaster import EventBroadcaster
from .events import Frame, InvalidFrame, Outbound
from .hub import Hub
from .mission import DEFAULT_MISSION_ID, MissionState, MissionStore
from .registry import Connection, ConnectionRegistry, Role
from .rooms import NetworkRoom, RoomRouter

__all__ = [
    "Hub",
    "Connection",
    "ConnectionRegistry",
    "Role",
    "MissionState",
    "MissionStore",
    "DEFAULT_MISSION_ID",
    "NetworkRoom",
    "RoomRouter",
    "EventBroadcaster",
    "Frame",
    "InvalidFrame",
    "Outbound",
]
