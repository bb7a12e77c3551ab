"""
TacMap - shared mission state and net relay for servers and units

Participants connect over a WebSocket, announce themselves as servers or
units, and the hub keeps everyone on the same mission while relaying chat,
entity and clock events across named nets.

Example:
    >>> from tacmap import Hub
    >>> hub = Hub()
    >>> cid = await hub.connect(websocket)
    >>> await hub.receive(cid, {"event": "server connected", "data": {...}})
"""

__version__ = "1.0.0"

from .config import Config, get_config
from .hub import Hub, MissionState

__all__ = [
    "__version__",
    "Config",
    "get_config",
    "Hub",
    "MissionState",
]
