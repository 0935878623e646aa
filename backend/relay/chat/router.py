"""Read-only HTTP endpoints for the relay.

Endpoints:
    GET /messages/recent - Buffered messages inside a time window
    GET /rooms           - Rooms with at least one member
"""
import logging
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from . import sockets

logger = logging.getLogger(__name__)

router = APIRouter(tags=["relay"])


@router.get("/messages/recent")
async def get_recent_messages(
    windowMs: Optional[int] = Query(None, ge=0, description="Max message age in ms (default: sync window)")
) -> JSONResponse:
    """Get the buffered messages younger than ``windowMs``.

    This is the same snapshot a newly connected client receives as
    ``sync_messages``, oldest first.

    Args:
        windowMs: Age threshold in milliseconds. Defaults to the configured
            sync window.

    Returns:
        JSON with the messages array and the window that was applied.

    Example:
        GET /messages/recent?windowMs=60000
    """
    manager = sockets.manager
    window = manager.sync_window_ms if windowMs is None else windowMs
    messages = manager.recent_messages(window)
    return JSONResponse({
        "messages": [msg.to_wire() for msg in messages],
        "windowMs": window,
    })


@router.get("/rooms")
async def list_rooms() -> JSONResponse:
    """List rooms that currently have members, with their member counts."""
    rooms = sockets.manager.rooms
    return JSONResponse({
        "rooms": [
            {"name": name, "members": len(rooms.members(name))}
            for name in rooms.room_names()
        ]
    })
