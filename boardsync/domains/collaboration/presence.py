import logging
from typing import Dict, List, Optional

from boardsync.domains.identity.entities import User

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Кто сейчас онлайн: соединение -> пользователь.

    Один экземпляр на процесс, создаётся при старте приложения и очищается
    при остановке. У пользователя не больше одного живого соединения:
    новый вход вытесняет предыдущее.
    """

    def __init__(self):
        self._users: Dict[str, User] = {}
        # username -> connection_id
        self._connections: Dict[str, str] = {}

    def register(self, connection_id: str, user: User) -> Optional[str]:
        """Привязка соединения к пользователю; возвращает вытесненное соединение"""
        displaced = None
        previous = self._connections.get(user.username)
        if previous is not None and previous != connection_id:
            self._users.pop(previous, None)
            displaced = previous
            logger.info(f"User {user.username} re-logged in, connection {previous} displaced")

        current = self._users.get(connection_id)
        if current is not None and current.username != user.username:
            self._connections.pop(current.username, None)

        user.go_online(connection_id)
        self._users[connection_id] = user
        self._connections[user.username] = connection_id
        return displaced

    def unregister(self, connection_id: str) -> Optional[User]:
        """Снятие привязки при отключении; None если соединение неизвестно"""
        user = self._users.pop(connection_id, None)
        if user is None:
            return None

        if self._connections.get(user.username) == connection_id:
            del self._connections[user.username]
        user.go_offline()
        return user

    def get(self, connection_id: str) -> Optional[User]:
        return self._users.get(connection_id)

    def connection_for(self, username: str) -> Optional[str]:
        return self._connections.get(username)

    def list_online(self) -> List[User]:
        return list(self._users.values())

    def clear(self) -> None:
        self._users.clear()
        self._connections.clear()

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._users

    def __len__(self) -> int:
        return len(self._users)
