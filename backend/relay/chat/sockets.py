"""Socket.IO server and event handlers.

The server runs in ASGI mode next to the FastAPI app (see ``relay.main``).
Handlers are thin: they forward each transport event to the module-level
``RelayManager``.

Events handled:
    - connect:      register the connection, broadcast user_count, sync history
    - join_room:    join a room (payload is the room name)
    - send_message: store and broadcast a message; the returned dict is the
                    ack delivered to clients that asked for one
    - disconnect:   deregister, drop rooms, broadcast user_count
"""
import logging
from typing import Any, Optional

import socketio

from .manager import EVENT_JOIN_ROOM, EVENT_SEND_MESSAGE, RelayManager
from .transport import SocketIOTransport
from relay.config import get_config

logger = logging.getLogger(__name__)

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=get_config().server.allowed_origins,
    logger=False,
    engineio_logger=False,
)

# Global relay state shared by all handlers
manager = RelayManager.from_settings(SocketIOTransport(sio))


@sio.event
async def connect(sid: str, environ: dict, auth: Optional[Any] = None) -> None:
    """Called when a client connects to the socket server."""
    logger.info(f"[WS] User connected: {sid}")
    await manager.on_connect(sid)


@sio.on(EVENT_JOIN_ROOM)
async def join_room(sid: str, room: Any) -> None:
    """Join the room named by the payload."""
    await manager.join_room(sid, room)


@sio.on(EVENT_SEND_MESSAGE)
async def send_message(sid: str, data: Any = None) -> dict:
    """Relay a message to everyone and return the ack payload."""
    ack = await manager.send(sid, data)
    return ack.to_payload()


@sio.event
async def disconnect(sid: str, *args: Any) -> None:
    """Called when a client disconnects from the socket server."""
    logger.info(f"[WS] User disconnected: {sid}")
    await manager.on_disconnect(sid)
