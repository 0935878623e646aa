"""Bounded, time-windowed buffer of recently relayed messages.

The buffer keeps the last ``capacity`` messages, oldest first, and forgets
anything older than ``retention_ms`` every time a message is inserted. New
connections are replayed the slice of the buffer younger than the sync window
(see ``MessageBuffer.recent``).

Invariants after every ``insert``:
    - ``len(buffer) <= capacity`` (oldest entries evicted first)
    - no entry satisfies ``now - timestamp >= retention_ms``

Thread Safety:
    Inserts and reads are serialized behind a single lock, so a reader never
    observes a half-applied insert. Normal use is a single event loop.
"""
import copy
import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_CAPACITY = 50

# One hour
DEFAULT_RETENTION_MS = 60 * 60 * 1000

# Ten minutes
DEFAULT_SYNC_WINDOW_MS = 10 * 60 * 1000


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


# =============================================================================
# Data Models
# =============================================================================


class BufferedMessage(BaseModel):
    """An immutable buffered copy of a relayed message.

    Attributes:
        payload: The message record exactly as the sender supplied it.
        timestamp: Server-assigned acceptance time (ms since epoch).
    """
    model_config = ConfigDict(frozen=True)

    payload: Any = Field(..., description="Application-defined message record")
    timestamp: int = Field(..., description="Server timestamp in ms since epoch")

    @property
    def message_id(self) -> Optional[Any]:
        """The client-chosen ``id`` of the payload, if it has one."""
        if isinstance(self.payload, dict):
            return self.payload.get("id")
        return None

    def to_wire(self) -> Dict[str, Any]:
        """Render the record sent to clients in ``sync_messages``.

        Object payloads get the server ``timestamp`` merged in; anything else
        is wrapped as ``{"data": ..., "timestamp": ...}``.
        """
        if isinstance(self.payload, dict):
            record = copy.deepcopy(self.payload)
        else:
            record = {"data": copy.deepcopy(self.payload)}
        record["timestamp"] = self.timestamp
        return record


# =============================================================================
# Message Buffer
# =============================================================================


class MessageBuffer:
    """FIFO message store bounded by count and by age.

    Args:
        capacity: Max number of entries kept regardless of age.
        retention_ms: Max age of an entry; older ones are evicted on insert.
        clock: Callable returning the current time in epoch milliseconds.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        retention_ms: int = DEFAULT_RETENTION_MS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if retention_ms <= 0:
            raise ValueError("retention_ms must be positive")

        self.capacity = capacity
        self.retention_ms = retention_ms
        self._clock = clock
        self._entries: Deque[BufferedMessage] = deque()
        self._last_timestamp: Optional[int] = None
        self._lock = threading.Lock()

    def insert(self, payload: Any) -> BufferedMessage:
        """Store a copy of ``payload`` stamped with the current time.

        Eviction runs before returning: first by count (oldest first), then
        by age against ``retention_ms``.

        Args:
            payload: The message record to store. It is deep-copied.

        Returns:
            The stored BufferedMessage carrying the authoritative timestamp.
        """
        with self._lock:
            now = self._clock()
            # Timestamps never go backwards, even if the wall clock does.
            timestamp = now
            if self._last_timestamp is not None and timestamp < self._last_timestamp:
                timestamp = self._last_timestamp
            self._last_timestamp = timestamp

            entry = BufferedMessage(payload=copy.deepcopy(payload), timestamp=timestamp)
            self._entries.append(entry)

            while len(self._entries) > self.capacity:
                self._entries.popleft()

            # Entries are ordered by timestamp, so expired ones sit at the head.
            expired = 0
            while self._entries and now - self._entries[0].timestamp >= self.retention_ms:
                self._entries.popleft()
                expired += 1
            if expired:
                logger.debug(f"[Buffer] Evicted {expired} expired message(s)")

            return entry

    def recent(self, window_ms: int) -> List[BufferedMessage]:
        """Return entries younger than ``window_ms``, oldest first.

        Pure read: the buffer is not modified. A non-positive window returns
        an empty list.
        """
        if window_ms <= 0:
            return []
        with self._lock:
            now = self._clock()
            return [m for m in self._entries if now - m.timestamp < window_ms]

    def snapshot(self) -> List[BufferedMessage]:
        """Return every buffered entry, oldest first."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        """Drop all entries."""
        with self._lock:
            self._entries.clear()
            self._last_timestamp = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
