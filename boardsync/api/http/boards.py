from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List
import uuid

from boardsync.api.http.deps import get_gateway, http_error
from boardsync.core.auth import get_actor
from boardsync.core.db import get_db
from boardsync.core.exceptions import NotFoundError
from boardsync.domains.boards.schemas import BoardCreate, BoardUpdate
from boardsync.domains.boards.services import BoardService
from boardsync.domains.collaboration.dispatch import MutationGateway
from boardsync.domains.identity.entities import Actor

router = APIRouter(prefix="/boards", tags=["boards"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_board(
    board_data: BoardCreate,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
) -> Dict[str, Any]:
    """Создание новой доски"""
    board = await gateway.create_board(
        board_data.name,
        actor,
        description=board_data.description,
        color=board_data.color
    )
    return board.to_dict()


@router.get("")
async def list_boards(db: AsyncSession = Depends(get_db)) -> List[Dict[str, Any]]:
    """Список активных досок"""
    boards = await BoardService(db).list_boards()
    return [board.to_dict() for board in boards]


@router.get("/default")
async def get_default_board(gateway: MutationGateway = Depends(get_gateway)) -> Dict[str, Any]:
    """Общая доска; создаётся с колонками по умолчанию, если досок ещё нет"""
    board = await gateway.ensure_default_board()
    return board.to_dict()


@router.get("/{board_id}")
async def get_board(board_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    """Доска с колонками и карточками"""
    try:
        board = await BoardService(db).find_board(board_id)
    except NotFoundError as e:
        raise http_error(e)
    return board.to_dict()


@router.patch("/{board_id}")
async def update_board(
    board_id: uuid.UUID,
    board_data: BoardUpdate,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
) -> Dict[str, Any]:
    """Обновление доски"""
    try:
        await gateway.update_board(board_id, board_data, actor)
        board = await gateway.reader.find_board(board_id)
    except NotFoundError as e:
        raise http_error(e)
    return board.to_dict()


@router.delete("/{board_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_board(
    board_id: uuid.UUID,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    """Мягкое удаление доски"""
    try:
        await gateway.delete_board(board_id, actor)
    except NotFoundError as e:
        raise http_error(e)
