"""Outbound transport used by the relay.

The relay only needs three operations from the connection layer: send an
event to one connection, send an event to everyone, and put a connection in a
named group. ``SocketIOTransport`` provides them on top of a python-socketio
``AsyncServer``; tests substitute their own implementation.
"""
import logging
from typing import Any, Protocol

import socketio

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Connection-layer operations the relay depends on."""

    async def send_to_one(self, connection_id: str, event: str, payload: Any) -> None:
        ...

    async def send_to_all(self, event: str, payload: Any) -> None:
        ...

    async def add_to_group(self, connection_id: str, group: str) -> None:
        ...


class SocketIOTransport:
    """Transport backed by a Socket.IO server.

    Args:
        server: The AsyncServer whose connections the relay manages.
        namespace: Socket.IO namespace to emit on (default ``/``).
    """

    def __init__(self, server: socketio.AsyncServer, namespace: str = "/") -> None:
        self.server = server
        self.namespace = namespace

    async def send_to_one(self, connection_id: str, event: str, payload: Any) -> None:
        await self.server.emit(event, payload, to=connection_id, namespace=self.namespace)

    async def send_to_all(self, event: str, payload: Any) -> None:
        await self.server.emit(event, payload, namespace=self.namespace)

    async def add_to_group(self, connection_id: str, group: str) -> None:
        await self.server.enter_room(connection_id, group, namespace=self.namespace)
