# alapio/realtime/presence.py

from typing import Dict, List, Optional, Set


class PresenceRegistry:
    """
    Which live connection is joined as which user, for one process lifetime.

    Presence is reference counted: a user stays online while at least one of
    their connections is registered. Nothing here is persisted.
    """

    def __init__(self):
        self._users_by_connection: Dict[str, str] = {}
        self._connections_by_user: Dict[str, Set[str]] = {}

    def register(self, connection_id: str, user_id: str) -> bool:
        """
        Bind a connection to a user, replacing any earlier binding.
        Returns True when the user was offline before this call.
        """
        previous = self._users_by_connection.get(connection_id)
        if previous == user_id:
            return False
        if previous is not None:
            self._detach(connection_id, previous)

        self._users_by_connection[connection_id] = user_id
        connections = self._connections_by_user.setdefault(user_id, set())
        came_online = not connections
        connections.add(connection_id)
        return came_online

    def unregister(self, connection_id: str) -> Optional[str]:
        user_id = self._users_by_connection.pop(connection_id, None)
        if user_id is not None:
            self._detach(connection_id, user_id)
        return user_id

    def is_online(self, user_id: str) -> bool:
        return bool(self._connections_by_user.get(user_id))

    def user_for(self, connection_id: str) -> Optional[str]:
        return self._users_by_connection.get(connection_id)

    def connections_for(self, user_id: str) -> Set[str]:
        return set(self._connections_by_user.get(user_id, ()))

    def online_users(self) -> List[str]:
        return sorted(self._connections_by_user)

    def _detach(self, connection_id: str, user_id: str):
        connections = self._connections_by_user.get(user_id)
        if connections is None:
            return
        connections.discard(connection_id)
        if not connections:
            del self._connections_by_user[user_id]

    def __len__(self):
        return len(self._users_by_connection)
