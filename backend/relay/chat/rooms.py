"""Room membership tracking.

Rooms have no lifecycle of their own: a room exists exactly as long as at
least one connection is a member. Empty rooms are removed as soon as their
last member leaves, so they never show up in queries.
"""
import logging
from typing import Dict, FrozenSet, List, Set

logger = logging.getLogger(__name__)


class RoomMembership:
    """Many-to-many mapping between connections and room names."""

    def __init__(self) -> None:
        # room name -> member connection ids
        self._members: Dict[str, Set[str]] = {}

        # connection id -> joined room names (reverse index for cleanup)
        self._rooms: Dict[str, Set[str]] = {}

    def join(self, connection_id: str, room: str) -> bool:
        """Add a connection to a room.

        Joining a room twice is a no-op. Room names must be non-empty
        strings; anything else is ignored.

        Returns:
            True if the connection is a member of ``room`` afterwards.
        """
        if not isinstance(room, str) or not room:
            logger.warning(f"[Rooms] Ignoring invalid room name from {connection_id}: {room!r}")
            return False

        self._members.setdefault(room, set()).add(connection_id)
        self._rooms.setdefault(connection_id, set()).add(room)
        return True

    def leave_all(self, connection_id: str) -> List[str]:
        """Remove every membership held by a connection.

        Returns:
            The rooms the connection was removed from (empty for unknown ids).
        """
        rooms = self._rooms.pop(connection_id, set())
        for room in rooms:
            members = self._members.get(room)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self._members[room]
        return sorted(rooms)

    def members(self, room: str) -> FrozenSet[str]:
        return frozenset(self._members.get(room, ()))

    def rooms_of(self, connection_id: str) -> FrozenSet[str]:
        return frozenset(self._rooms.get(connection_id, ()))

    def has_room(self, room: str) -> bool:
        return bool(self._members.get(room))

    def room_names(self) -> List[str]:
        """Names of all rooms with at least one member, sorted."""
        return sorted(name for name, members in self._members.items() if members)
