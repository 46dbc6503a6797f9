import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.core.config import settings
from boardsync.core.exceptions import InvalidOperationError, NotFoundError
from boardsync.db.repositories.board_repository import (
    BoardRepository, ColumnRepository, CardRepository
)
from boardsync.domains.boards.entities import Board, Column, Card, wire_changes
from boardsync.domains.boards.ordering import place
from boardsync.domains.boards.schemas import BoardUpdate, ColumnUpdate, CardUpdate
from boardsync.domains.boards.services import BoardService
from boardsync.domains.collaboration.events import EventType, timestamp
from boardsync.domains.identity.entities import Actor

logger = logging.getLogger(__name__)


class MutationGateway:
    """Единственное место, где мутация доски становится постоянной и рассылается.

    Каждая операция сначала проверяет все ссылки (NotFoundError /
    InvalidOperationError до любой записи), затем пишет и делает один commit,
    и только после успешного commit рассылает событие в комнату доски,
    исключая соединение автора.
    """

    def __init__(self, session: AsyncSession, broadcaster=None):
        self.session = session
        self.broadcaster = broadcaster
        self.boards = BoardRepository(session)
        self.columns = ColumnRepository(session)
        self.cards = CardRepository(session)
        self.reader = BoardService(session)

    # Доски

    async def create_board(
        self,
        name: str,
        actor: Actor,
        description: Optional[str] = None,
        color: Optional[str] = None
    ) -> Board:
        board = await self.boards.create(Board.create_board(name, description=description, color=color))
        await self._commit()
        logger.info(f"Board {board.uuid} created by {actor.username}")
        return board

    async def ensure_default_board(self, column_names: Optional[List[str]] = None) -> Board:
        """Общая доска по умолчанию; создаётся при первом обращении"""
        board = await self.boards.get_first_active()
        if board is None:
            board = await self.boards.create(Board.create_board(settings.default_board_name))
            names = settings.default_board_columns if column_names is None else column_names
            for position, name in enumerate(names):
                await self.columns.create(Column.create_column(name, board.uuid, position=position))
            await self._commit()
            logger.info(f"Default board {board.uuid} created")

        return await self.reader.find_board(board.uuid)

    async def update_board(self, board_id: uuid.UUID, data: BoardUpdate, actor: Actor) -> Board:
        board = await self._require_board(board_id)
        changed = board.apply_updates(data.changes())
        if changed:
            await self.boards.update_fields(board.uuid, changed)
        await self._commit()

        if changed:
            await self._broadcast(board.uuid, EventType.BOARD_UPDATED, {
                "boardId": str(board.uuid),
                "updates": wire_changes(board, changed),
                "updatedBy": actor.username,
            }, actor)
        return board

    async def delete_board(self, board_id: uuid.UUID, actor: Actor) -> None:
        board = await self._require_board(board_id)
        await self.boards.soft_delete(board.uuid)
        await self._commit()

        await self._broadcast(board.uuid, EventType.BOARD_DELETED, {
            "boardId": str(board.uuid),
            "deletedBy": actor.username,
        }, actor)

    # Колонки

    async def create_column(
        self,
        board_id: uuid.UUID,
        name: str,
        actor: Actor,
        position: Optional[int] = None,
        description: Optional[str] = None,
        color: Optional[str] = None
    ) -> Column:
        """Новая колонка на индексе position (по умолчанию в конец)"""
        board = await self._require_board(board_id)
        siblings = await self.columns.list_by_board(board.uuid)

        column = Column.create_column(name, board.uuid, description=description, color=color)
        order = place([sibling.uuid for sibling in siblings], column.uuid, position)
        column.position = order.index(column.uuid)

        column = await self.columns.create(column)
        await self.columns.set_positions(order)
        await self._commit()

        await self._broadcast(board.uuid, EventType.COLUMN_CREATED, {
            "column": column.to_dict(),
            "boardId": str(board.uuid),
            "createdBy": actor.username,
        }, actor)
        return column

    async def update_column(self, column_id: uuid.UUID, data: ColumnUpdate, actor: Actor) -> Column:
        column = await self._require_column(column_id)
        changed = column.apply_updates(data.changes())
        if changed:
            await self.columns.update_fields(column.uuid, changed)
        await self._commit()

        if changed:
            await self._broadcast(column.board_id, EventType.COLUMN_UPDATED, {
                "columnId": str(column.uuid),
                "updates": wire_changes(column, changed),
                "updatedBy": actor.username,
                "boardId": str(column.board_id),
            }, actor)
        return column

    async def move_column(self, column_id: uuid.UUID, new_position: int, actor: Actor) -> Column:
        """Перестановка колонки; new_position итоговый индекс"""
        column = await self._require_column(column_id)
        siblings = await self.columns.list_by_board(column.board_id)

        order = place([sibling.uuid for sibling in siblings], column.uuid, new_position)
        await self.columns.set_positions(order)
        column = await self.columns.get_by_uuid(column.uuid)
        await self._commit()

        await self._broadcast(column.board_id, EventType.COLUMN_MOVED, {
            "columnId": str(column.uuid),
            "newPosition": column.position,
            "movedBy": actor.username,
            "boardId": str(column.board_id),
        }, actor)
        return column

    async def delete_column(self, column_id: uuid.UUID, actor: Actor) -> None:
        """Мягкое удаление колонки; её карточки остаются доступны по id"""
        column = await self._require_column(column_id)
        await self.columns.soft_delete(column.uuid)
        await self._commit()

        await self._broadcast(column.board_id, EventType.COLUMN_DELETED, {
            "columnId": str(column.uuid),
            "boardId": str(column.board_id),
            "deletedBy": actor.username,
        }, actor)

    # Карточки

    async def create_card(
        self,
        column_id: uuid.UUID,
        board_id: uuid.UUID,
        title: str,
        actor: Actor,
        position: Optional[int] = None,
        **fields: Any
    ) -> Card:
        """Новая карточка в колонке на индексе position (по умолчанию в конец)"""
        board = await self._require_board(board_id)
        column = await self._require_column(column_id)
        if column.board_id != board.uuid:
            raise InvalidOperationError(f"Column {column.uuid} does not belong to board {board.uuid}")

        siblings = await self.cards.list_by_column(column.uuid)
        card = Card.create_card(title, column.uuid, board.uuid, **fields)
        order = place([sibling.uuid for sibling in siblings], card.uuid, position)
        card.position = order.index(card.uuid)

        card = await self.cards.create(card)
        await self.cards.set_positions(order)
        await self._commit()

        await self._broadcast(board.uuid, EventType.CARD_CREATED, {
            "card": card.to_dict(),
            "columnId": str(column.uuid),
            "boardId": str(board.uuid),
            "createdBy": actor.username,
        }, actor)
        return card

    async def update_card(self, card_id: uuid.UUID, data: CardUpdate, actor: Actor) -> Card:
        card = await self._require_card(card_id)
        changed = card.apply_updates(data.changes())
        if changed:
            await self.cards.update_fields(card.uuid, changed)
        await self._commit()

        if changed:
            await self._broadcast(card.board_id, EventType.CARD_UPDATED, {
                "cardId": str(card.uuid),
                "updates": wire_changes(card, changed),
                "updatedBy": actor.username,
                "boardId": str(card.board_id),
            }, actor)
        return card

    async def move_card(
        self,
        card_id: uuid.UUID,
        target_column_id: uuid.UUID,
        new_position: int,
        actor: Actor
    ) -> Card:
        """Перенос карточки в колонку на итоговый индекс new_position.

        В своей колонке карточка сначала убирается, затем вставляется, так что
        индекс считается среди оставшихся соседей. Исходная колонка при переносе
        только плотно перенумеровывается, её порядок не меняется.
        """
        card = await self._require_card(card_id)
        target = await self._require_column(target_column_id)
        if target.board_id != card.board_id:
            raise InvalidOperationError(
                f"Card {card.uuid} cannot move to column {target.uuid} of another board"
            )

        source_column_id = card.column_id
        target_cards = await self.cards.list_by_column(target.uuid)
        order = place([sibling.uuid for sibling in target_cards], card.uuid, new_position)

        if source_column_id != target.uuid:
            await self.cards.update_fields(card.uuid, {"column_id": target.uuid})
            remaining = await self.cards.list_by_column(source_column_id)
            await self.cards.set_positions([sibling.uuid for sibling in remaining])
        await self.cards.set_positions(order)

        card = await self.cards.get_by_uuid(card.uuid)
        await self._commit()

        await self._broadcast(card.board_id, EventType.CARD_MOVED, {
            "cardId": str(card.uuid),
            "fromColumnId": str(source_column_id),
            "targetColumnId": str(target.uuid),
            "newPosition": card.position,
            "card": card.to_dict(),
            "movedBy": actor.username,
            "boardId": str(card.board_id),
        }, actor)
        return card

    async def delete_card(self, card_id: uuid.UUID, actor: Actor) -> None:
        card = await self._require_card(card_id)
        await self.cards.soft_delete(card.uuid)
        await self._commit()

        await self._broadcast(card.board_id, EventType.CARD_DELETED, {
            "cardId": str(card.uuid),
            "columnId": str(card.column_id),
            "boardId": str(card.board_id),
            "deletedBy": actor.username,
        }, actor)

    async def _require_board(self, board_id: uuid.UUID) -> Board:
        board = await self.boards.get_by_uuid(board_id)
        if board is None:
            raise NotFoundError("Board", board_id)
        return board

    async def _require_column(self, column_id: uuid.UUID) -> Column:
        column = await self.columns.get_by_uuid(column_id)
        if column is None:
            raise NotFoundError("Column", column_id)
        return column

    async def _require_card(self, card_id: uuid.UUID) -> Card:
        card = await self.cards.get_by_uuid(card_id)
        if card is None:
            raise NotFoundError("Card", card_id)
        return card

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Commit failed, mutation rolled back: {e}")
            raise

    async def _broadcast(self, board_id: uuid.UUID, event: EventType, data: Dict[str, Any], actor: Actor) -> None:
        """Рассылка после commit; ошибки рассылки только логируются"""
        logger.info(f"{event.value} on board {board_id} by {actor.username}")
        if self.broadcaster is None:
            return

        data["timestamp"] = timestamp()
        try:
            await self.broadcaster.broadcast_to_board(board_id, event, data, exclude=actor.connection_id)
        except Exception as e:
            logger.error(f"Broadcast of {event.value} on board {board_id} failed: {e}")
