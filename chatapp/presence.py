from threading import Lock
from typing import Any, Dict, List, Optional


class PresenceService:
    """
    In-memory map of user id to the connection currently representing that user.

    One entry per user: registering again replaces the previous handle. The map
    lives in process memory only and starts empty after a restart, so it is a
    routing hint for pushes and never a record of delivery.
    """

    def __init__(self):
        self._connections: Dict[int, Any] = {}
        self._lock = Lock()

    def register(self, user_id: int, connection: Any) -> Optional[Any]:
        """Store the handle for user_id and return the one it replaced, if any."""
        with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = connection
            return previous

    def unregister(self, user_id: int, connection: Any = None) -> bool:
        """
        Drop the entry for user_id.

        When a connection is given, the entry is only removed if it still points
        at that connection; a late disconnect from a replaced socket is a no-op.
        """
        with self._lock:
            current = self._connections.get(user_id)
            if current is None:
                return False
            if connection is not None and current is not connection:
                return False
            del self._connections[user_id]
            return True

    def lookup(self, user_id: int) -> Optional[Any]:
        with self._lock:
            return self._connections.get(user_id)

    def is_online(self, user_id: int) -> bool:
        return self.lookup(user_id) is not None

    def online_user_ids(self) -> List[int]:
        with self._lock:
            return list(self._connections.keys())

    def clear(self):
        with self._lock:
            self._connections.clear()
