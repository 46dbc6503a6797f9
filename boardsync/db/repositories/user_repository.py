from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
import uuid

from boardsync.core.exceptions import DuplicateError
from boardsync.db.models.user import User as UserModel
from boardsync.domains.identity.entities import User


class UserRepository:
    """Репозиторий для работы с пользователями"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: User) -> User:
        """Создание нового пользователя"""
        db_user = UserModel(
            uuid=user.uuid,
            username=user.username,
            display_name=user.display_name,
            email=user.email,
            color=user.color,
            is_online=user.is_online,
            last_seen=user.last_seen,
            socket_id=user.socket_id,
            created_at=user.created_at,
            updated_at=user.updated_at
        )

        self.session.add(db_user)
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateError("User with this email or username already exists")
        return self._to_domain(db_user)

    async def get_by_username(self, username: str) -> Optional[User]:
        """Получение пользователя по username"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.username == username)
        )
        db_user = result.scalar_one_or_none()
        return self._to_domain(db_user) if db_user else None

    async def get_by_socket_id(self, socket_id: str) -> Optional[User]:
        """Получение пользователя по текущему соединению"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.socket_id == socket_id)
        )
        db_user = result.scalars().first()
        return self._to_domain(db_user) if db_user else None

    async def update(self, user: User) -> User:
        """Обновление профиля и статуса присутствия"""
        db_user = await self._get_model(user.uuid)
        db_user.display_name = user.display_name
        db_user.color = user.color
        db_user.is_online = user.is_online
        db_user.last_seen = user.last_seen
        db_user.socket_id = user.socket_id
        db_user.updated_at = user.updated_at

        await self.session.flush()
        return self._to_domain(db_user)

    async def email_exists(self, email: str) -> bool:
        """Проверка существования email"""
        result = await self.session.execute(
            select(UserModel.uuid).where(UserModel.email == email)
        )
        return result.scalar_one_or_none() is not None

    async def username_exists(self, username: str) -> bool:
        """Проверка существования username"""
        result = await self.session.execute(
            select(UserModel.uuid).where(UserModel.username == username)
        )
        return result.scalar_one_or_none() is not None

    async def _get_model(self, user_uuid: uuid.UUID) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.uuid == user_uuid)
        )
        return result.scalar_one_or_none()

    def _to_domain(self, db_user: UserModel) -> User:
        """Преобразование модели БД в доменную сущность"""
        return User(
            uuid=db_user.uuid,
            username=db_user.username,
            display_name=db_user.display_name,
            email=db_user.email,
            color=db_user.color,
            is_online=db_user.is_online,
            last_seen=db_user.last_seen,
            socket_id=db_user.socket_id,
            created_at=db_user.created_at,
            updated_at=db_user.updated_at
        )
