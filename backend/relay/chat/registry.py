"""Registry of live connections."""
import logging
import uuid
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Tracks which connections are currently live.

    Connection ids are assigned by the transport (the Socket.IO ``sid``) or
    generated here. An id stays unique while it is registered.
    """

    def __init__(self) -> None:
        # connection_id -> None; a dict keeps registration order for fan-out
        self._connections: Dict[str, None] = {}

    def register(self, connection_id: Optional[str] = None) -> str:
        """Register a new connection.

        Args:
            connection_id: Id chosen by the transport. A UUID4 string is
                generated when omitted.

        Returns:
            The registered connection id. Registering an id that is already
            live returns it unchanged without counting it twice.
        """
        if connection_id is None:
            connection_id = str(uuid.uuid4())
            while connection_id in self._connections:
                connection_id = str(uuid.uuid4())
        elif connection_id in self._connections:
            logger.debug(f"[Registry] Connection {connection_id} already registered")
            return connection_id

        self._connections[connection_id] = None
        return connection_id

    def deregister(self, connection_id: str) -> bool:
        """Remove a connection. Unknown ids are ignored.

        Returns:
            True if the connection was live, False otherwise.
        """
        if connection_id not in self._connections:
            return False
        del self._connections[connection_id]
        return True

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def live_count(self) -> int:
        return len(self._connections)

    def connection_ids(self) -> List[str]:
        """Snapshot of live connection ids in registration order."""
        return list(self._connections)
