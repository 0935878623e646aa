"""Relay manager: connection lifecycle, room joins and message fan-out.

This module glues the connection registry, room membership and message
buffer together and drives the outbound events of the relay protocol.

Protocol (event names are the wire contract with existing clients):
    Inbound:
        - join_room(room)            -> membership update, no broadcast
        - send_message(record, ack?) -> buffer insert, broadcast, ack
    Outbound:
        - user_count(int)            -> everyone, on every connect/disconnect
        - receive_message(record)    -> everyone, on every send (unmodified)
        - sync_messages([record])    -> the new connection only, when the
                                        buffer holds messages inside the
                                        sync window

Delivery is global: every message goes to every live connection. Rooms are
tracked (and mirrored into transport groups) but do not scope delivery.

Thread Safety:
    Designed for a single asyncio event loop. The message buffer carries its
    own lock; the registries do not.
"""
import asyncio
import logging
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, Field

from .buffer import (
    DEFAULT_CAPACITY,
    DEFAULT_RETENTION_MS,
    DEFAULT_SYNC_WINDOW_MS,
    BufferedMessage,
    MessageBuffer,
    now_ms,
)
from .registry import ConnectionRegistry
from .rooms import RoomMembership
from .transport import Transport
from relay.config import BufferSettings, get_config

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Inbound events
EVENT_JOIN_ROOM = "join_room"
EVENT_SEND_MESSAGE = "send_message"

# Outbound events
EVENT_USER_COUNT = "user_count"
EVENT_RECEIVE_MESSAGE = "receive_message"
EVENT_SYNC_MESSAGES = "sync_messages"

# Error reported to senders when a message could not be processed
SEND_FAILED_ERROR = "Failed to process message"


# =============================================================================
# Data Models
# =============================================================================


class SendAck(BaseModel):
    """Result of a send, returned to the sender as the Socket.IO ack.

    Attributes:
        success: Whether the message was stored and fanned out.
        messageId: The client-chosen id of the message (success only).
        timestamp: Server-assigned timestamp in ms (success only).
        error: Generic error indicator (failure only).
    """
    success: bool = Field(..., description="Whether the send was processed")
    messageId: Optional[Any] = Field(default=None, description="Client-chosen message id")
    timestamp: Optional[int] = Field(default=None, description="Server timestamp (ms)")
    error: Optional[str] = Field(default=None, description="Error indicator on failure")

    @classmethod
    def ok(cls, message: BufferedMessage) -> "SendAck":
        return cls(success=True, messageId=message.message_id, timestamp=message.timestamp)

    @classmethod
    def failed(cls, error: str = SEND_FAILED_ERROR) -> "SendAck":
        return cls(success=False, error=error)

    def to_payload(self) -> dict:
        """Wire shape: ``{success, messageId, timestamp}`` or ``{success, error}``."""
        if self.success:
            return {"success": True, "messageId": self.messageId, "timestamp": self.timestamp}
        return {"success": False, "error": self.error}


# =============================================================================
# Relay Manager
# =============================================================================


class RelayManager:
    """Owns all relay state and reacts to transport events.

    This class maintains:
    - The registry of live connections (drives ``user_count``)
    - Room membership per connection
    - The bounded, time-windowed message buffer (drives ``sync_messages``)

    Args:
        transport: Outbound connection layer.
        capacity: Buffer capacity (max messages retained).
        retention_ms: Buffer retention window.
        sync_window_ms: Age threshold for the history pushed on connect.
        clock: Callable returning epoch milliseconds (injectable for tests).

    Note:
        The service uses the module-level ``manager`` created in
        ``relay.chat.sockets``; tests build their own instances.
    """

    def __init__(
        self,
        transport: Transport,
        capacity: int = DEFAULT_CAPACITY,
        retention_ms: int = DEFAULT_RETENTION_MS,
        sync_window_ms: int = DEFAULT_SYNC_WINDOW_MS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.transport = transport
        self.sync_window_ms = sync_window_ms
        self.registry = ConnectionRegistry()
        self.rooms = RoomMembership()
        self.buffer = MessageBuffer(capacity=capacity, retention_ms=retention_ms, clock=clock)

    @classmethod
    def from_settings(
        cls,
        transport: Transport,
        settings: Optional[BufferSettings] = None,
        clock: Callable[[], int] = now_ms,
    ) -> "RelayManager":
        """Build a manager using buffer settings (defaults to the app config)."""
        settings = settings or get_config().buffer
        return cls(
            transport,
            capacity=settings.capacity,
            retention_ms=settings.retention_ms,
            sync_window_ms=settings.sync_window_ms,
            clock=clock,
        )

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    async def on_connect(self, connection_id: Optional[str] = None) -> str:
        """Register a new connection, announce the count and sync history.

        The history snapshot is taken right after registration, before any
        await, so it can never include messages sent by the new connection.

        Args:
            connection_id: Transport-assigned id (generated when omitted).

        Returns:
            The registered connection id.
        """
        connection_id = self.registry.register(connection_id)
        history = self.buffer.recent(self.sync_window_ms)
        logger.info(
            f"[Relay] Connection {connection_id} registered. "
            f"{self.registry.live_count()} live, {len(history)} message(s) to sync"
        )

        await self._broadcast_user_count()

        if history:
            await self._safe_send(
                connection_id,
                EVENT_SYNC_MESSAGES,
                [message.to_wire() for message in history],
            )
        return connection_id

    async def on_disconnect(self, connection_id: str) -> bool:
        """Drop a connection and its room memberships, then announce the count.

        Unknown connection ids are ignored and nothing is broadcast.

        Returns:
            True if the connection was live.
        """
        if not self.registry.deregister(connection_id):
            logger.debug(f"[Relay] Disconnect for unknown connection {connection_id}")
            return False

        left = self.rooms.leave_all(connection_id)
        logger.info(
            f"[Relay] Connection {connection_id} disconnected (left {len(left)} room(s)). "
            f"{self.registry.live_count()} live"
        )
        await self._broadcast_user_count()
        return True

    # =========================================================================
    # Rooms
    # =========================================================================

    async def join_room(self, connection_id: str, room: str) -> bool:
        """Add a connection to a room. Nothing is broadcast.

        The membership is mirrored into the transport's groups; a failure
        there is logged and the membership is kept.

        Returns:
            True if the connection is a member of the room afterwards.
        """
        if not self.rooms.join(connection_id, room):
            return False

        logger.info(f"[Relay] Connection {connection_id} joined room {room}")
        try:
            await self.transport.add_to_group(connection_id, room)
        except Exception as e:
            logger.warning(f"[Relay] Failed to add {connection_id} to group {room}: {e}")
        return True

    # =========================================================================
    # Messaging
    # =========================================================================

    async def send(self, connection_id: str, payload: Any) -> SendAck:
        """Store a message, fan it out to every connection and build the ack.

        Failures are isolated to this send: they are logged and reported
        only through the returned failure ack.

        Args:
            connection_id: The sender.
            payload: The message record as received from the client.

        Returns:
            SendAck with the client message id and server timestamp, or a
            failure ack if the message could not be processed.
        """
        logger.info(f"[Relay] Message received from {connection_id}: {payload!r:.80}")
        try:
            stored = self.buffer.insert(payload)
            await self.broadcast(EVENT_RECEIVE_MESSAGE, payload)
        except Exception:
            logger.exception(f"[Relay] Failed to process message from {connection_id}")
            return SendAck.failed()
        return SendAck.ok(stored)

    async def broadcast(self, event: str, payload: Any) -> None:
        """Send an event to every live connection concurrently.

        Each connection is an independent send; one failing connection does
        not stop delivery to the rest.
        """
        connections = self.registry.connection_ids()
        if not connections:
            return

        results = await asyncio.gather(
            *[self._safe_send(conn, event, payload) for conn in connections],
            return_exceptions=True
        )

        failed = [conn for conn, success in zip(connections, results) if success is not True]
        if failed:
            logger.warning(
                f"[Relay] {event} not delivered to {len(failed)} of {len(connections)} connection(s)"
            )

    async def _safe_send(self, connection_id: str, event: str, payload: Any) -> bool:
        """Send to one connection, reporting failure instead of raising.

        Returns:
            True if successful, False if the send failed.
        """
        try:
            await self.transport.send_to_one(connection_id, event, payload)
            return True
        except Exception as e:
            logger.debug(f"Failed to send {event} to {connection_id}: {e}")
            return False

    async def _broadcast_user_count(self) -> None:
        count = self.registry.live_count()
        try:
            await self.transport.send_to_all(EVENT_USER_COUNT, count)
        except Exception as e:
            logger.warning(f"[Relay] Failed to broadcast user_count={count}: {e}")

    # =========================================================================
    # Queries
    # =========================================================================

    def live_count(self) -> int:
        return self.registry.live_count()

    def recent_messages(self, window_ms: Optional[int] = None) -> List[BufferedMessage]:
        """Buffered messages younger than ``window_ms`` (default: sync window)."""
        if window_ms is None:
            window_ms = self.sync_window_ms
        return self.buffer.recent(window_ms)
