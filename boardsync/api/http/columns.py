from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List
import uuid

from boardsync.api.http.deps import get_gateway, http_error
from boardsync.core.auth import get_actor
from boardsync.core.db import get_db
from boardsync.core.exceptions import NotFoundError
from boardsync.domains.boards.schemas import ColumnCreate, ColumnUpdate, ColumnMove
from boardsync.domains.boards.services import BoardService
from boardsync.domains.collaboration.dispatch import MutationGateway
from boardsync.domains.identity.entities import Actor

router = APIRouter(prefix="/columns", tags=["columns"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_column(
    column_data: ColumnCreate,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
) -> Dict[str, Any]:
    """Создание колонки"""
    try:
        column = await gateway.create_column(
            column_data.board_id,
            column_data.name,
            actor,
            position=column_data.position,
            description=column_data.description,
            color=column_data.color
        )
    except NotFoundError as e:
        raise http_error(e)
    return column.to_dict()


@router.get("")
async def list_columns(
    board_id: uuid.UUID = Query(..., alias="boardId"),
    db: AsyncSession = Depends(get_db)
) -> List[Dict[str, Any]]:
    """Колонки доски по порядку"""
    columns = await BoardService(db).list_columns(board_id)
    return [column.to_dict() for column in columns]


@router.get("/{column_id}")
async def get_column(column_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    try:
        column = await BoardService(db).get_column(column_id)
    except NotFoundError as e:
        raise http_error(e)
    return column.to_dict()


@router.patch("/{column_id}")
async def update_column(
    column_id: uuid.UUID,
    column_data: ColumnUpdate,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
) -> Dict[str, Any]:
    """Обновление полей колонки"""
    try:
        await gateway.update_column(column_id, column_data, actor)
        column = await gateway.reader.get_column(column_id)
    except NotFoundError as e:
        raise http_error(e)
    return column.to_dict()


@router.patch("/{column_id}/move")
async def move_column(
    column_id: uuid.UUID,
    move_data: ColumnMove,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
) -> Dict[str, Any]:
    """Перестановка колонки на итоговый индекс"""
    try:
        await gateway.move_column(column_id, move_data.new_position, actor)
        column = await gateway.reader.get_column(column_id)
    except NotFoundError as e:
        raise http_error(e)
    return column.to_dict()


@router.delete("/{column_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_column(
    column_id: uuid.UUID,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    """Мягкое удаление колонки"""
    try:
        await gateway.delete_column(column_id, actor)
    except NotFoundError as e:
        raise http_error(e)
