from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional
import uuid

from boardsync.api.http.deps import get_gateway, http_error
from boardsync.core.auth import get_actor
from boardsync.core.db import get_db
from boardsync.core.exceptions import InvalidOperationError, NotFoundError
from boardsync.domains.boards.schemas import CardCreate, CardUpdate, CardMove
from boardsync.domains.boards.services import BoardService
from boardsync.domains.collaboration.dispatch import MutationGateway
from boardsync.domains.identity.entities import Actor

router = APIRouter(prefix="/cards", tags=["cards"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_card(
    card_data: CardCreate,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
) -> Dict[str, Any]:
    """Создание карточки"""
    try:
        card = await gateway.create_card(
            card_data.column_id,
            card_data.board_id,
            card_data.title,
            actor,
            position=card_data.position,
            description=card_data.description,
            priority=card_data.priority,
            assigned_to=card_data.assigned_to,
            due_date=card_data.due_date,
            tags=card_data.tags
        )
    except (NotFoundError, InvalidOperationError) as e:
        raise http_error(e)
    return card.to_dict()


@router.get("")
async def list_cards(
    column_id: Optional[uuid.UUID] = Query(None, alias="columnId"),
    board_id: Optional[uuid.UUID] = Query(None, alias="boardId"),
    db: AsyncSession = Depends(get_db)
) -> List[Dict[str, Any]]:
    """Карточки колонки или всей доски"""
    board_service = BoardService(db)
    if column_id is not None:
        cards = await board_service.list_cards_by_column(column_id)
    elif board_id is not None:
        cards = await board_service.list_cards_by_board(board_id)
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="columnId or boardId query parameter is required"
        )
    return [card.to_dict() for card in cards]


@router.get("/{card_id}")
async def get_card(card_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    try:
        card = await BoardService(db).get_card(card_id)
    except NotFoundError as e:
        raise http_error(e)
    return card.to_dict()


@router.patch("/{card_id}")
async def update_card(
    card_id: uuid.UUID,
    card_data: CardUpdate,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
) -> Dict[str, Any]:
    """Обновление полей карточки"""
    try:
        card = await gateway.update_card(card_id, card_data, actor)
    except NotFoundError as e:
        raise http_error(e)
    return card.to_dict()


@router.patch("/{card_id}/move")
async def move_card(
    card_id: uuid.UUID,
    move_data: CardMove,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
) -> Dict[str, Any]:
    """Перенос карточки в колонку на итоговый индекс"""
    try:
        card = await gateway.move_card(card_id, move_data.target_column_id, move_data.new_position, actor)
    except (NotFoundError, InvalidOperationError) as e:
        raise http_error(e)
    return card.to_dict()


@router.delete("/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_card(
    card_id: uuid.UUID,
    gateway: MutationGateway = Depends(get_gateway),
    actor: Actor = Depends(get_actor)
):
    """Мягкое удаление карточки"""
    try:
        await gateway.delete_card(card_id, actor)
    except NotFoundError as e:
        raise http_error(e)
