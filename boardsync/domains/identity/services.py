import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.core.exceptions import DuplicateError, NotFoundError
from boardsync.db.repositories.user_repository import UserRepository
from boardsync.domains.identity.entities import User
from boardsync.domains.identity.schemas import UserBase

logger = logging.getLogger(__name__)


class IdentityService:
    """Сервис идентификации пользователей и их статуса присутствия"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_repository = UserRepository(session)

    async def register_user(self, user_data: UserBase) -> User:
        """Регистрация нового пользователя"""
        if await self.user_repository.username_exists(user_data.username):
            raise DuplicateError("Username already taken")

        if await self.user_repository.email_exists(user_data.email):
            raise DuplicateError("Email already registered")

        user = User.create_user(
            username=user_data.username,
            display_name=user_data.display_name,
            email=user_data.email,
            color=user_data.color
        )

        created = await self.user_repository.create(user)
        await self.session.commit()
        logger.info(f"User {created.username} registered")
        return created

    async def login(self, login_data: UserBase, connection_id: str) -> User:
        """Вход по username: существующая личность переиспользуется, иначе создаётся новая"""
        user = await self.user_repository.get_by_username(login_data.username)

        if user is None:
            if await self.user_repository.email_exists(login_data.email):
                raise DuplicateError("Email already registered")
            user = User.create_user(
                username=login_data.username,
                display_name=login_data.display_name,
                email=login_data.email,
                color=login_data.color
            )
            user.go_online(connection_id)
            user = await self.user_repository.create(user)
            logger.info(f"New user {user.username} created on login")
        else:
            user.go_online(connection_id)
            user = await self.user_repository.update(user)

        await self.session.commit()
        return user

    async def disconnect_connection(self, connection_id: str) -> Optional[User]:
        """Отметка offline, только если соединение всё ещё текущее у пользователя"""
        user = await self.user_repository.get_by_socket_id(connection_id)
        if user is None:
            return None

        user.go_offline()
        user = await self.user_repository.update(user)
        await self.session.commit()
        return user

    async def get_user(self, username: str) -> User:
        """Получение пользователя по username"""
        user = await self.user_repository.get_by_username(username)
        if user is None:
            raise NotFoundError("User", username)
        return user
