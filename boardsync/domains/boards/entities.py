import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic.alias_generators import to_camel

from boardsync.domains.identity.entities import utcnow


DEFAULT_BOARD_COLOR = "#3B82F6"
DEFAULT_COLUMN_COLOR = "#6B7280"


class CardPriority(str, Enum):
    """Приоритет карточки"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Дата в UTC; наивные значения (SQLite) считаются UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def wire_changes(entity, changed: Dict[str, Any]) -> Dict[str, Any]:
    """Изменившиеся поля сущности в том же виде, что и в to_dict"""
    data = entity.to_dict()
    return {to_camel(field): data[to_camel(field)] for field in changed}


class Card:
    """Карточка (задача) внутри колонки"""

    # Поля, которые можно менять через update; колонка и позиция меняются только через move
    UPDATABLE_FIELDS = ("title", "description", "priority", "assigned_to", "due_date", "tags")

    def __init__(
        self,
        uuid: uuid.UUID,
        title: str,
        column_id: uuid.UUID,
        board_id: uuid.UUID,
        position: int = 0,
        description: Optional[str] = None,
        priority: CardPriority = CardPriority.MEDIUM,
        assigned_to: Optional[str] = None,
        due_date: Optional[datetime] = None,
        tags: Optional[List[str]] = None,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.title = title
        self.column_id = column_id
        self.board_id = board_id
        self.position = position
        self.description = description
        self.priority = CardPriority(priority)
        self.assigned_to = assigned_to
        self.due_date = as_utc(due_date)
        self.tags = list(tags or [])
        self.is_active = is_active
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    def apply_updates(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Применение частичных изменений, возвращает реально изменившиеся поля"""
        changed = {}
        for field, value in updates.items():
            if field not in self.UPDATABLE_FIELDS:
                continue
            if field == "priority" and value is not None:
                value = CardPriority(value)
            if field == "tags":
                value = list(value or [])
            if field == "due_date":
                value = as_utc(value)
            if getattr(self, field) != value:
                setattr(self, field, value)
                changed[field] = value
        if changed:
            self.updated_at = utcnow()
        return changed

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация карточки в формат протокола"""
        return {
            "id": str(self.uuid),
            "title": self.title,
            "description": self.description,
            "columnId": str(self.column_id),
            "boardId": str(self.board_id),
            "position": self.position,
            "priority": self.priority.value,
            "assignedTo": self.assigned_to,
            "dueDate": _iso(self.due_date),
            "tags": list(self.tags),
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def create_card(
        cls,
        title: str,
        column_id: uuid.UUID,
        board_id: uuid.UUID,
        position: int = 0,
        **fields
    ) -> "Card":
        return cls(
            uuid=uuid.uuid4(),
            title=title,
            column_id=column_id,
            board_id=board_id,
            position=position,
            **fields
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Card):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"Card(uuid={self.uuid}, title={self.title}, column={self.column_id}, pos={self.position})"


class Column:
    """Колонка доски; порядок карточек вычисляется из их позиций"""

    UPDATABLE_FIELDS = ("name", "description", "color")

    def __init__(
        self,
        uuid: uuid.UUID,
        name: str,
        board_id: uuid.UUID,
        position: int = 0,
        description: Optional[str] = None,
        color: str = DEFAULT_COLUMN_COLOR,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.name = name
        self.board_id = board_id
        self.position = position
        self.description = description
        self.color = color
        self.is_active = is_active
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()
        self.cards: List[Card] = []

    def apply_updates(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        changed = {}
        for field, value in updates.items():
            if field in self.UPDATABLE_FIELDS and getattr(self, field) != value:
                setattr(self, field, value)
                changed[field] = value
        if changed:
            self.updated_at = utcnow()
        return changed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.uuid),
            "name": self.name,
            "description": self.description,
            "boardId": str(self.board_id),
            "position": self.position,
            "color": self.color,
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "cards": [card.to_dict() for card in self.cards],
        }

    @classmethod
    def create_column(
        cls,
        name: str,
        board_id: uuid.UUID,
        position: int = 0,
        description: Optional[str] = None,
        color: Optional[str] = None
    ) -> "Column":
        return cls(
            uuid=uuid.uuid4(),
            name=name,
            board_id=board_id,
            position=position,
            description=description,
            color=color or DEFAULT_COLUMN_COLOR
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Column):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"Column(uuid={self.uuid}, name={self.name}, pos={self.position})"


class Board:
    """Доска: корень агрегата колонок и карточек"""

    UPDATABLE_FIELDS = ("name", "description", "color")

    def __init__(
        self,
        uuid: uuid.UUID,
        name: str,
        description: Optional[str] = None,
        color: str = DEFAULT_BOARD_COLOR,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.uuid = uuid
        self.name = name
        self.description = description
        self.color = color
        self.is_active = is_active
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()
        self.columns: List[Column] = []

    def apply_updates(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        changed = {}
        for field, value in updates.items():
            if field in self.UPDATABLE_FIELDS and getattr(self, field) != value:
                setattr(self, field, value)
                changed[field] = value
        if changed:
            self.updated_at = utcnow()
        return changed

    def count_cards(self) -> int:
        return sum(len(column.cards) for column in self.columns)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.uuid),
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "columns": [column.to_dict() for column in self.columns],
        }

    @classmethod
    def create_board(
        cls,
        name: str,
        description: Optional[str] = None,
        color: Optional[str] = None
    ) -> "Board":
        return cls(
            uuid=uuid.uuid4(),
            name=name,
            description=description,
            color=color or DEFAULT_BOARD_COLOR
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Board):
            return False
        return self.uuid == other.uuid

    def __repr__(self) -> str:
        return f"Board(uuid={self.uuid}, name={self.name}, columns={len(self.columns)})"
