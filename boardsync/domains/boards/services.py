from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from boardsync.core.exceptions import NotFoundError
from boardsync.db.repositories.board_repository import (
    BoardRepository, ColumnRepository, CardRepository
)
from boardsync.domains.boards.entities import Board, Column, Card


class BoardService:
    """Чтение доски вместе с колонками и карточками в порядке позиций"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.board_repository = BoardRepository(session)
        self.column_repository = ColumnRepository(session)
        self.card_repository = CardRepository(session)

    async def find_board(self, board_id: uuid.UUID, include_archived: bool = False) -> Board:
        """Доска с колонками и карточками; архивные только по запросу"""
        board = await self.board_repository.get_by_uuid(board_id)
        if board is None:
            raise NotFoundError("Board", board_id)

        board.columns = await self.column_repository.list_by_board(
            board.uuid, include_inactive=include_archived
        )
        for column in board.columns:
            column.cards = await self.card_repository.list_by_column(
                column.uuid, include_inactive=include_archived
            )
        return board

    async def list_boards(self) -> List[Board]:
        """Все активные доски с содержимым"""
        boards = await self.board_repository.list_active()
        return [await self.find_board(board.uuid) for board in boards]

    async def get_column(self, column_id: uuid.UUID) -> Column:
        column = await self.column_repository.get_by_uuid(column_id)
        if column is None:
            raise NotFoundError("Column", column_id)
        column.cards = await self.card_repository.list_by_column(column.uuid)
        return column

    async def list_columns(self, board_id: uuid.UUID) -> List[Column]:
        """Активные колонки доски с карточками"""
        columns = await self.column_repository.list_by_board(board_id)
        for column in columns:
            column.cards = await self.card_repository.list_by_column(column.uuid)
        return columns

    async def get_card(self, card_id: uuid.UUID) -> Card:
        card = await self.card_repository.get_by_uuid(card_id)
        if card is None:
            raise NotFoundError("Card", card_id)
        return card

    async def list_cards_by_column(self, column_id: uuid.UUID) -> List[Card]:
        return await self.card_repository.list_by_column(column_id)

    async def list_cards_by_board(self, board_id: uuid.UUID) -> List[Card]:
        return await self.card_repository.list_by_board(board_id)
