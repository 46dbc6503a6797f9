from typing import Optional, List, Dict, Any, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import uuid

from boardsync.db.models.board import (
    Board as BoardModel,
    BoardColumn as ColumnModel,
    Card as CardModel
)
from boardsync.domains.boards.entities import Board, Column, Card
from boardsync.domains.boards.ordering import positions
from boardsync.domains.identity.entities import utcnow


class BoardRepository:
    """Репозиторий для работы с досками"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, board: Board) -> Board:
        """Создание новой доски"""
        db_board = BoardModel(
            uuid=board.uuid,
            name=board.name,
            description=board.description,
            color=board.color,
            is_active=board.is_active,
            created_at=board.created_at,
            updated_at=board.updated_at
        )

        self.session.add(db_board)
        await self.session.flush()
        return self._to_domain(db_board)

    async def get_by_uuid(self, board_uuid: uuid.UUID, include_inactive: bool = False) -> Optional[Board]:
        """Получение доски по UUID (по умолчанию только активной)"""
        db_board = await self._get_model(board_uuid, include_inactive)
        return self._to_domain(db_board) if db_board else None

    async def list_active(self) -> List[Board]:
        """Активные доски, новые первыми"""
        result = await self.session.execute(
            select(BoardModel)
            .where(BoardModel.is_active.is_(True))
            .order_by(BoardModel.created_at.desc())
        )
        return [self._to_domain(board) for board in result.scalars().all()]

    async def get_first_active(self) -> Optional[Board]:
        """Самая старая активная доска (общая доска по умолчанию)"""
        result = await self.session.execute(
            select(BoardModel)
            .where(BoardModel.is_active.is_(True))
            .order_by(BoardModel.created_at.asc())
            .limit(1)
        )
        db_board = result.scalar_one_or_none()
        return self._to_domain(db_board) if db_board else None

    async def update_fields(self, board_uuid: uuid.UUID, values: Dict[str, Any]) -> Optional[Board]:
        """Частичное обновление полей доски"""
        db_board = await self._get_model(board_uuid)
        if not db_board:
            return None

        for field, value in values.items():
            setattr(db_board, field, value)
        db_board.updated_at = utcnow()

        await self.session.flush()
        return self._to_domain(db_board)

    async def soft_delete(self, board_uuid: uuid.UUID) -> bool:
        """Мягкое удаление доски"""
        db_board = await self._get_model(board_uuid)
        if not db_board:
            return False

        db_board.is_active = False
        db_board.updated_at = utcnow()
        await self.session.flush()
        return True

    async def _get_model(self, board_uuid: uuid.UUID, include_inactive: bool = False) -> Optional[BoardModel]:
        query = select(BoardModel).where(BoardModel.uuid == board_uuid)
        if not include_inactive:
            query = query.where(BoardModel.is_active.is_(True))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    def _to_domain(self, db_board: BoardModel) -> Board:
        """Преобразование модели БД в доменную сущность"""
        return Board(
            uuid=db_board.uuid,
            name=db_board.name,
            description=db_board.description,
            color=db_board.color,
            is_active=db_board.is_active,
            created_at=db_board.created_at,
            updated_at=db_board.updated_at
        )


class ColumnRepository:
    """Репозиторий для работы с колонками"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, column: Column) -> Column:
        """Создание новой колонки"""
        db_column = ColumnModel(
            uuid=column.uuid,
            board_id=column.board_id,
            name=column.name,
            description=column.description,
            position=column.position,
            color=column.color,
            is_active=column.is_active,
            created_at=column.created_at,
            updated_at=column.updated_at
        )

        self.session.add(db_column)
        await self.session.flush()
        return self._to_domain(db_column)

    async def get_by_uuid(self, column_uuid: uuid.UUID, include_inactive: bool = False) -> Optional[Column]:
        """Получение колонки по UUID"""
        db_column = await self._get_model(column_uuid, include_inactive)
        return self._to_domain(db_column) if db_column else None

    async def list_by_board(self, board_uuid: uuid.UUID, include_inactive: bool = False) -> List[Column]:
        """Колонки доски в порядке позиций"""
        query = select(ColumnModel).where(ColumnModel.board_id == board_uuid)
        if not include_inactive:
            query = query.where(ColumnModel.is_active.is_(True))
        result = await self.session.execute(
            query.order_by(ColumnModel.position.asc(), ColumnModel.created_at.asc())
        )
        return [self._to_domain(column) for column in result.scalars().all()]

    async def update_fields(self, column_uuid: uuid.UUID, values: Dict[str, Any]) -> Optional[Column]:
        """Частичное обновление полей колонки"""
        db_column = await self._get_model(column_uuid)
        if not db_column:
            return None

        for field, value in values.items():
            setattr(db_column, field, value)
        db_column.updated_at = utcnow()

        await self.session.flush()
        return self._to_domain(db_column)

    async def set_positions(self, ordered_ids: Sequence[uuid.UUID]) -> None:
        """Перенумерация колонок по заданному порядку"""
        await _renumber(self.session, ColumnModel, ordered_ids)

    async def soft_delete(self, column_uuid: uuid.UUID) -> bool:
        """Мягкое удаление колонки (карточки не трогаем)"""
        db_column = await self._get_model(column_uuid)
        if not db_column:
            return False

        db_column.is_active = False
        db_column.updated_at = utcnow()
        await self.session.flush()
        return True

    async def _get_model(self, column_uuid: uuid.UUID, include_inactive: bool = False) -> Optional[ColumnModel]:
        query = select(ColumnModel).where(ColumnModel.uuid == column_uuid)
        if not include_inactive:
            query = query.where(ColumnModel.is_active.is_(True))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    def _to_domain(self, db_column: ColumnModel) -> Column:
        """Преобразование модели БД в доменную сущность"""
        return Column(
            uuid=db_column.uuid,
            name=db_column.name,
            board_id=db_column.board_id,
            position=db_column.position,
            description=db_column.description,
            color=db_column.color,
            is_active=db_column.is_active,
            created_at=db_column.created_at,
            updated_at=db_column.updated_at
        )


class CardRepository:
    """Репозиторий для работы с карточками"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, card: Card) -> Card:
        """Создание новой карточки"""
        db_card = CardModel(
            uuid=card.uuid,
            column_id=card.column_id,
            board_id=card.board_id,
            title=card.title,
            description=card.description,
            position=card.position,
            priority=card.priority,
            assigned_to=card.assigned_to,
            due_date=card.due_date,
            tags=list(card.tags),
            is_active=card.is_active,
            created_at=card.created_at,
            updated_at=card.updated_at
        )

        self.session.add(db_card)
        await self.session.flush()
        return self._to_domain(db_card)

    async def get_by_uuid(self, card_uuid: uuid.UUID, include_inactive: bool = False) -> Optional[Card]:
        """Получение карточки по UUID"""
        db_card = await self._get_model(card_uuid, include_inactive)
        return self._to_domain(db_card) if db_card else None

    async def list_by_column(self, column_uuid: uuid.UUID, include_inactive: bool = False) -> List[Card]:
        """Карточки колонки в порядке позиций"""
        query = select(CardModel).where(CardModel.column_id == column_uuid)
        if not include_inactive:
            query = query.where(CardModel.is_active.is_(True))
        result = await self.session.execute(
            query.order_by(CardModel.position.asc(), CardModel.created_at.asc())
        )
        return [self._to_domain(card) for card in result.scalars().all()]

    async def list_by_board(self, board_uuid: uuid.UUID, include_inactive: bool = False) -> List[Card]:
        """Карточки доски в порядке позиций; по умолчанию только активные карточки активных колонок"""
        query = select(CardModel).where(CardModel.board_id == board_uuid)
        if not include_inactive:
            query = (
                query.join(ColumnModel, ColumnModel.uuid == CardModel.column_id)
                .where(CardModel.is_active.is_(True), ColumnModel.is_active.is_(True))
            )
        result = await self.session.execute(
            query.order_by(CardModel.position.asc(), CardModel.created_at.asc())
        )
        return [self._to_domain(card) for card in result.scalars().all()]

    async def update_fields(self, card_uuid: uuid.UUID, values: Dict[str, Any]) -> Optional[Card]:
        """Частичное обновление полей карточки"""
        db_card = await self._get_model(card_uuid)
        if not db_card:
            return None

        for field, value in values.items():
            setattr(db_card, field, value)
        db_card.updated_at = utcnow()

        await self.session.flush()
        return self._to_domain(db_card)

    async def set_positions(self, ordered_ids: Sequence[uuid.UUID]) -> None:
        """Перенумерация карточек по заданному порядку"""
        await _renumber(self.session, CardModel, ordered_ids)

    async def soft_delete(self, card_uuid: uuid.UUID) -> bool:
        """Мягкое удаление карточки"""
        db_card = await self._get_model(card_uuid)
        if not db_card:
            return False

        db_card.is_active = False
        db_card.updated_at = utcnow()
        await self.session.flush()
        return True

    async def _get_model(self, card_uuid: uuid.UUID, include_inactive: bool = False) -> Optional[CardModel]:
        query = select(CardModel).where(CardModel.uuid == card_uuid)
        if not include_inactive:
            query = query.where(CardModel.is_active.is_(True))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    def _to_domain(self, db_card: CardModel) -> Card:
        """Преобразование модели БД в доменную сущность"""
        return Card(
            uuid=db_card.uuid,
            title=db_card.title,
            column_id=db_card.column_id,
            board_id=db_card.board_id,
            position=db_card.position,
            description=db_card.description,
            priority=db_card.priority,
            assigned_to=db_card.assigned_to,
            due_date=db_card.due_date,
            tags=db_card.tags,
            is_active=db_card.is_active,
            created_at=db_card.created_at,
            updated_at=db_card.updated_at
        )


async def _renumber(session: AsyncSession, model, ordered_ids: Sequence[uuid.UUID]) -> None:
    """Плотная перенумерация позиций; пишем только изменившиеся строки"""
    if not ordered_ids:
        return

    result = await session.execute(select(model).where(model.uuid.in_(list(ordered_ids))))
    rows = {row.uuid: row for row in result.scalars().all()}
    now = utcnow()
    for item_id, position in positions(ordered_ids).items():
        row = rows.get(item_id)
        if row is not None and row.position != position:
            row.position = position
            row.updated_at = now

    await session.flush()
