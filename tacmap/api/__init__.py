"""
HTTP and WebSocket surface for TacMap.

Provides:
- The participant socket (/socket)
- The forwarding endpoint (/proxy)
- Document read/write (/json, /xml, /entity)
- Static pages and health/stats
"""

from .server import create_app, run_server

__all__ = [
    "create_app",
    "run_server",
]
