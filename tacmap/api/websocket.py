"""
WebSocket endpoint bridging participant sockets to the hub.
"""

import logging

from fastapi import WebSocket

from ..hub import Hub

logger = logging.getLogger(__name__)


async def hub_socket_endpoint(websocket: WebSocket):
    """
    Persistent participant channel.

    Frames are JSON ``{"event": ..., "data": ...}`` both ways, sent as text
    or binary. On accept the participant receives a ``connection`` frame
    carrying its socket id. Whatever ends the receive loop, the connection is
    removed from the hub.
    """
    hub: Hub = websocket.app.state.hub

    await websocket.accept()
    connection_id = await hub.connect(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(f"WebSocket {connection_id} closed by peer ({message.get('code')})")
                break

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            await hub.receive(connection_id, raw)

    except Exception as e:
        logger.error(f"WebSocket error on {connection_id}: {e}")
    finally:
        await hub.disconnect(connection_id)
