from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List

from boardsync.api.http.deps import get_hub, http_error
from boardsync.core.db import get_db
from boardsync.core.exceptions import DuplicateError, NotFoundError
from boardsync.domains.collaboration.hub import ConnectionHub
from boardsync.domains.identity.schemas import UserCreate
from boardsync.domains.identity.services import IdentityService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Регистрация пользователя; цвет выбирается случайно, если не задан"""
    identity_service = IdentityService(db)

    try:
        user = await identity_service.register_user(user_data)
    except DuplicateError as e:
        raise http_error(e)
    return user.to_dict()


@router.get("/online")
async def get_online_users(hub: ConnectionHub = Depends(get_hub)) -> List[Dict[str, Any]]:
    """Пользователи с живым соединением"""
    return [user.to_dict() for user in hub.presence.list_online()]


@router.get("/{username}")
async def get_user(username: str, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    """Получение пользователя по username"""
    try:
        user = await IdentityService(db).get_user(username)
    except NotFoundError as e:
        raise http_error(e)
    return user.to_dict()
