"""Имена событий и конверт сообщений протокола синхронизации.

Каждое сообщение в обе стороны: ``{"type": <имя события>, "data": {...}}``.
"""
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field


class EventType(str, Enum):
    # клиент -> сервер
    USER_LOGIN = "user-login"
    JOIN_BOARD = "join-board"
    LEAVE_BOARD = "leave-board"
    PING = "ping"

    # сервер -> клиент
    USER_LOGGED_IN = "user-logged-in"
    USER_LOGIN_ERROR = "user-login-error"
    USER_CONNECTED = "user-connected"
    USER_DISCONNECTED = "user-disconnected"
    BOARD_JOINED = "board-joined"
    BOARD_LEFT = "board-left"
    USER_JOINED_BOARD = "user-joined-board"
    USER_LEFT_BOARD = "user-left-board"
    PONG = "pong"
    ERROR = "error"

    # мутации доски
    BOARD_UPDATED = "board-updated"
    BOARD_DELETED = "board-deleted"
    COLUMN_CREATED = "column-created"
    COLUMN_UPDATED = "column-updated"
    COLUMN_MOVED = "column-moved"
    COLUMN_DELETED = "column-deleted"
    CARD_CREATED = "card-created"
    CARD_UPDATED = "card-updated"
    CARD_MOVED = "card-moved"
    CARD_DELETED = "card-deleted"


# Поле с автором мутации для каждого события (ключ: имя события)
ACTOR_FIELDS: Dict[str, str] = {
    EventType.BOARD_UPDATED.value: "updatedBy",
    EventType.BOARD_DELETED.value: "deletedBy",
    EventType.COLUMN_CREATED.value: "createdBy",
    EventType.COLUMN_UPDATED.value: "updatedBy",
    EventType.COLUMN_MOVED.value: "movedBy",
    EventType.COLUMN_DELETED.value: "deletedBy",
    EventType.CARD_CREATED.value: "createdBy",
    EventType.CARD_UPDATED.value: "updatedBy",
    EventType.CARD_MOVED.value: "movedBy",
    EventType.CARD_DELETED.value: "deletedBy",
}

MUTATION_EVENTS = frozenset(ACTOR_FIELDS)

# Обязательные поля мутации: в каждой группе должно быть хотя бы одно из имён
REQUIRED_FIELDS: Dict[str, Tuple[Tuple[str, ...], ...]] = {
    EventType.BOARD_UPDATED.value: (("updates",),),
    EventType.BOARD_DELETED.value: (),
    EventType.COLUMN_CREATED.value: (("column",),),
    EventType.COLUMN_UPDATED.value: (("columnId",), ("updates",)),
    EventType.COLUMN_MOVED.value: (("columnId",), ("newPosition",)),
    EventType.COLUMN_DELETED.value: (("columnId",),),
    EventType.CARD_CREATED.value: (("card",),),
    EventType.CARD_UPDATED.value: (("cardId",), ("updates",)),
    EventType.CARD_MOVED.value: (("cardId",), ("targetColumnId", "toColumnId")),
    EventType.CARD_DELETED.value: (("cardId",),),
}

PRESENCE_EVENTS = frozenset({
    EventType.USER_CONNECTED.value,
    EventType.USER_DISCONNECTED.value,
    EventType.USER_JOINED_BOARD.value,
    EventType.USER_LEFT_BOARD.value,
})


class WebSocketMessage(BaseModel):
    """Конверт входящего сообщения"""
    type: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_message(event: EventType, data: Dict[str, Any]) -> str:
    """Сериализация события в текст для отправки по сокету"""
    return json.dumps({"type": EventType(event).value, "data": data}, default=str)


def parse_message(raw: str) -> WebSocketMessage:
    """Разбор входящего текста; pydantic.ValidationError если конверт некорректен"""
    return WebSocketMessage.model_validate_json(raw)


def event_name(event: Union[EventType, str]) -> str:
    return event.value if isinstance(event, EventType) else event


def actor_field(event: Union[EventType, str]) -> Optional[str]:
    """Имя поля автора для мутации, None для остальных событий"""
    return ACTOR_FIELDS.get(event_name(event))


def actor_of(event: Union[EventType, str], data: Dict[str, Any]) -> Optional[str]:
    """Автор мутации из полезной нагрузки события"""
    field = actor_field(event)
    return data.get(field) if field else None


def missing_fields(event: Union[EventType, str], data: Dict[str, Any]) -> List[str]:
    """Обязательные поля мутации, которых нет в data ("a|b" для альтернатив)"""
    return [
        "|".join(group)
        for group in REQUIRED_FIELDS.get(event_name(event), ())
        if all(data.get(field) is None for field in group)
    ]
