from pydantic import Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
import uuid

from boardsync.domains.boards.entities import CardPriority
from boardsync.domains.identity.schemas import CamelModel


HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


def not_null(cls, v):
    if v is None:
        raise ValueError('Field cannot be null')
    return v


class PartialUpdate(CamelModel):
    """Частичное обновление: в изменения попадают только переданные поля"""

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class BoardCreate(CamelModel):
    """Схема для создания доски"""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)


class BoardUpdate(PartialUpdate):
    """Схема для обновления доски"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)

    check_not_null = field_validator('name', 'color')(not_null)


class ColumnCreate(CamelModel):
    """Схема для создания колонки; без position колонка встаёт в конец"""
    board_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)
    position: Optional[int] = Field(None, ge=0)


class ColumnUpdate(PartialUpdate):
    """Схема для обновления колонки"""
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)

    check_not_null = field_validator('name', 'color')(not_null)


class ColumnMove(CamelModel):
    """Перемещение колонки на итоговый индекс"""
    new_position: int = Field(..., ge=0)


class CardCreate(CamelModel):
    """Схема для создания карточки"""
    title: str = Field(..., min_length=1, max_length=200)
    column_id: uuid.UUID
    board_id: uuid.UUID
    description: Optional[str] = Field(None, max_length=2000)
    priority: CardPriority = CardPriority.MEDIUM
    assigned_to: Optional[str] = Field(None, max_length=100)
    due_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    position: Optional[int] = Field(None, ge=0)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        return [tag.strip() for tag in v if tag and tag.strip()]


class CardUpdate(PartialUpdate):
    """Схема для обновления карточки"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    priority: Optional[CardPriority] = None
    assigned_to: Optional[str] = Field(None, max_length=100)
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = None

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        if v is None:
            return v
        return [tag.strip() for tag in v if tag and tag.strip()]

    check_not_null = field_validator('title', 'priority')(not_null)


class CardMove(CamelModel):
    """Перемещение карточки в колонку на итоговый индекс"""
    target_column_id: uuid.UUID
    new_position: int = Field(0, ge=0)
