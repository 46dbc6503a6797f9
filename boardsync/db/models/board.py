from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, Enum, ForeignKey, JSON, Uuid

from boardsync.db.base import BaseModel
from boardsync.domains.boards.entities import CardPriority


class Board(BaseModel):
    __tablename__ = "boards"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(16), nullable=False, default="#3B82F6")
    is_active = Column(Boolean, default=True, nullable=False, index=True)


class BoardColumn(BaseModel):
    __tablename__ = "board_columns"

    # Порядок колонок задается только позицией; списка id на доске нет
    board_id = Column(Uuid(as_uuid=True), ForeignKey("boards.uuid"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    color = Column(String(16), nullable=False, default="#6B7280")
    is_active = Column(Boolean, default=True, nullable=False)


class Card(BaseModel):
    __tablename__ = "cards"

    column_id = Column(Uuid(as_uuid=True), ForeignKey("board_columns.uuid"), nullable=False, index=True)
    # Денормализовано для быстрой выборки по доске
    board_id = Column(Uuid(as_uuid=True), ForeignKey("boards.uuid"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    priority = Column(
        Enum(
            CardPriority,
            name="card_priority",
            native_enum=False,
            length=16,
            values_callable=lambda enum: [member.value for member in enum]
        ),
        nullable=False,
        default=CardPriority.MEDIUM
    )
    assigned_to = Column(String(100), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
