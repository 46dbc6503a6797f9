import random
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any


USER_COLORS = [
    "#007bff", "#28a745", "#dc3545", "#ffc107", "#17a2b8",
    "#6f42c1", "#e83e8c", "#fd7e14", "#20c997", "#6c757d"
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User:
    """Сущность пользователя домена Identity"""

    def __init__(
        self,
        uuid: uuid.UUID,
        username: str,
        display_name: str,
        email: str,
        color: str = USER_COLORS[0],
        is_online: bool = False,
        last_seen: Optional[datetime] = None,
        socket_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.username = username
        self.display_name = display_name
        self.email = email
        self.color = color
        self.is_online = is_online
        self.last_seen = last_seen
        self.socket_id = socket_id
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    def go_online(self, socket_id: str) -> None:
        """Пользователь подключился через новое соединение"""
        self.is_online = True
        self.socket_id = socket_id
        self.last_seen = utcnow()
        self.updated_at = self.last_seen

    def go_offline(self) -> None:
        """Пользователь отключился"""
        self.is_online = False
        self.socket_id = None
        self.last_seen = utcnow()
        self.updated_at = self.last_seen

    def public_profile(self) -> Dict[str, Any]:
        """Данные, которые видят другие участники"""
        return {
            "username": self.username,
            "displayName": self.display_name,
            "color": self.color,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.uuid),
            "username": self.username,
            "displayName": self.display_name,
            "email": self.email,
            "color": self.color,
            "isOnline": self.is_online,
            "lastSeen": self.last_seen.isoformat() if self.last_seen else None,
            "socketId": self.socket_id,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @staticmethod
    def random_color() -> str:
        return random.choice(USER_COLORS)

    @classmethod
    def create_user(
        cls,
        username: str,
        display_name: str,
        email: str,
        color: Optional[str] = None
    ) -> "User":
        """Создание нового пользователя, цвет выбирается случайно если не задан"""
        return cls(
            uuid=uuid.uuid4(),
            username=username,
            display_name=display_name,
            email=email,
            color=color or cls.random_color()
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, User):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"User(username={self.username}, online={self.is_online}, socket={self.socket_id})"


class Actor:
    """Автор мутации: пользователь и (если известно) его соединение"""

    def __init__(self, username: str, connection_id: Optional[str] = None):
        self.username = username
        self.connection_id = connection_id

    def __repr__(self) -> str:
        return f"Actor(username={self.username}, connection={self.connection_id})"
