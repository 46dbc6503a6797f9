"""Согласование локальной копии доски с сервером и другими клиентами.

Для каждого вида мутации выбрана одна политика (``MUTATION_POLICIES``):

* ``optimistic``: локальное изменение применяется сразу, затем уходит запрос;
  канонический ответ сервера заменяет локальную догадку. При ошибке запроса
  локальное состояние не откатывается, выставляется ``needs_reload``.
* ``confirmed``: локально ничего не меняется до ответа сервера; так
  создаются карточки и колонки, потому что идентификатор выдаёт сервер.

Входящие события других клиентов применяются по id. Событие, где автор
совпадает с локальным пользователем, игнорируется: своё изменение уже
применено через ответ на собственный запрос.
"""
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from boardsync.client.api import BoardApiClient
from boardsync.client.state import LocalBoard
from boardsync.domains.boards.ordering import insertion_index
from boardsync.domains.collaboration.events import (
    MUTATION_EVENTS, EventType, actor_of, event_name, parse_message
)

logger = logging.getLogger(__name__)


class MutationPolicy(str, Enum):
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"


MUTATION_POLICIES: Dict[str, MutationPolicy] = {
    "create-card": MutationPolicy.CONFIRMED,
    "create-column": MutationPolicy.CONFIRMED,
    "update-board": MutationPolicy.OPTIMISTIC,
    "update-column": MutationPolicy.OPTIMISTIC,
    "move-column": MutationPolicy.OPTIMISTIC,
    "delete-column": MutationPolicy.OPTIMISTIC,
    "update-card": MutationPolicy.OPTIMISTIC,
    "move-card": MutationPolicy.OPTIMISTIC,
    "delete-card": MutationPolicy.OPTIMISTIC,
}


class ReconciliationEngine:
    """Клиентская сторона синхронизации одной доски"""

    def __init__(self, api: BoardApiClient, username: str, board: Optional[LocalBoard] = None):
        self.api = api
        self.username = username
        self.board = board or LocalBoard()
        self.online_users: Dict[str, Dict[str, Any]] = {}
        # socketId -> участник текущей доски
        self.board_members: Dict[str, Dict[str, Any]] = {}
        self.needs_reload = False
        self._handlers: Dict[str, Callable[[Dict[str, Any]], bool]] = {
            EventType.BOARD_UPDATED.value: self._on_board_updated,
            EventType.BOARD_DELETED.value: self._on_board_deleted,
            EventType.COLUMN_CREATED.value: self._on_column_created,
            EventType.COLUMN_UPDATED.value: self._on_column_updated,
            EventType.COLUMN_MOVED.value: self._on_column_moved,
            EventType.COLUMN_DELETED.value: self._on_column_deleted,
            EventType.CARD_CREATED.value: self._on_card_created,
            EventType.CARD_UPDATED.value: self._on_card_updated,
            EventType.CARD_MOVED.value: self._on_card_moved,
            EventType.CARD_DELETED.value: self._on_card_deleted,
            EventType.USER_CONNECTED.value: self._on_user_connected,
            EventType.USER_DISCONNECTED.value: self._on_user_disconnected,
            EventType.BOARD_JOINED.value: self._on_board_joined,
            EventType.USER_JOINED_BOARD.value: self._on_user_joined_board,
            EventType.USER_LEFT_BOARD.value: self._on_user_left_board,
        }

    async def load(self, board_id: Optional[str] = None) -> LocalBoard:
        """Загрузка канонического снимка (доска по умолчанию, если id не задан)"""
        if board_id is None:
            data = await self.api.get_default_board()
        else:
            data = await self.api.get_board(board_id)
        self.board.load(data)
        self.needs_reload = False
        return self.board

    # Намерения пользователя

    async def create_card(
        self,
        column_id: str,
        title: str,
        position: Optional[int] = None,
        **fields: Any
    ) -> Optional[Dict[str, Any]]:
        return await self._mutate(
            "create-card",
            lambda: self.api.create_card(column_id, self.board.board_id, title, position, **fields),
            accept=self._accept_card
        )

    async def update_card(self, card_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._mutate(
            "update-card",
            lambda: self.api.update_card(card_id, updates),
            local=lambda: self.board.update_card(card_id, updates),
            accept=self._accept_card
        )

    async def move_card(self, card_id: str, target_column_id: str, new_position: int) -> Optional[Dict[str, Any]]:
        """Перенос карточки; new_position итоговый индекс в целевой колонке"""
        return await self._mutate(
            "move-card",
            lambda: self.api.move_card(card_id, target_column_id, new_position),
            local=lambda: self.board.move_card(card_id, target_column_id, new_position),
            accept=self._accept_card
        )

    async def drop_card(self, card_id: str, target_column_id: str, slot: int) -> Optional[Dict[str, Any]]:
        """Перенос по слоту перетаскивания (индекс соседа до удаления карточки)"""
        location = self.board.locate_card(card_id)
        if location is None:
            logger.warning(f"Card {card_id} is not on the local board, reload required")
            self.needs_reload = True
            return None

        source_column_id, source_index = location
        index = insertion_index(source_index, slot, same_container=source_column_id == target_column_id)
        return await self.move_card(card_id, target_column_id, index)

    async def delete_card(self, card_id: str) -> bool:
        result = await self._mutate(
            "delete-card",
            lambda: self._deleted(self.api.delete_card(card_id)),
            local=lambda: self.board.remove_card(card_id)
        )
        return result is not None

    async def create_column(self, name: str, position: Optional[int] = None, **fields: Any) -> Optional[Dict[str, Any]]:
        return await self._mutate(
            "create-column",
            lambda: self.api.create_column(self.board.board_id, name, position, **fields),
            accept=self.board.insert_column
        )

    async def update_column(self, column_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._mutate(
            "update-column",
            lambda: self.api.update_column(column_id, updates),
            local=lambda: self.board.update_column(column_id, updates),
            accept=self.board.replace_column
        )

    async def move_column(self, column_id: str, new_position: int) -> Optional[Dict[str, Any]]:
        return await self._mutate(
            "move-column",
            lambda: self.api.move_column(column_id, new_position),
            local=lambda: self.board.move_column(column_id, new_position),
            accept=self.board.replace_column
        )

    async def drop_column(self, column_id: str, slot: int) -> Optional[Dict[str, Any]]:
        """Перестановка колонки по слоту перетаскивания"""
        column_ids = self.board.column_ids()
        if column_id not in column_ids:
            self.needs_reload = True
            return None
        index = insertion_index(column_ids.index(column_id), slot, same_container=True)
        return await self.move_column(column_id, index)

    async def delete_column(self, column_id: str) -> bool:
        result = await self._mutate(
            "delete-column",
            lambda: self._deleted(self.api.delete_column(column_id)),
            local=lambda: self.board.remove_column(column_id)
        )
        return result is not None

    async def update_board(self, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._mutate(
            "update-board",
            lambda: self.api.update_board(self.board.board_id, updates),
            local=lambda: self.board.update_board(updates),
            accept=lambda board: self.board.update_board(
                {key: value for key, value in board.items() if key != "columns"}
            )
        )

    async def _mutate(
        self,
        kind: str,
        request: Callable[[], Awaitable[Any]],
        local: Optional[Callable[[], Any]] = None,
        accept: Optional[Callable[[Any], Any]] = None
    ) -> Any:
        optimistic = MUTATION_POLICIES[kind] is MutationPolicy.OPTIMISTIC
        if optimistic and local is not None:
            local()

        try:
            result = await request()
        except httpx.HTTPError as e:
            # Локальное состояние не откатываем, нужна перезагрузка
            logger.warning(f"{kind} failed, local state kept until reload: {e}")
            self.needs_reload = True
            return None

        if not optimistic and local is not None:
            local()
        if accept is not None and result is not None:
            accept(result)
        return result

    @staticmethod
    async def _deleted(request: Awaitable[None]) -> bool:
        await request
        return True

    # Входящие события

    def handle_message(self, raw: str) -> bool:
        """Разбор сообщения сокета и применение события"""
        try:
            message = parse_message(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed message: {e}")
            return False
        return self.handle_event(message.type, message.data)

    def handle_event(self, event: str, data: Dict[str, Any]) -> bool:
        """Применение события; True если локальное состояние изменилось"""
        event = event_name(event)
        handler = self._handlers.get(event)
        if handler is None:
            return False

        if event in MUTATION_EVENTS:
            board_id = data.get("boardId")
            if board_id is not None and self.board.board_id is not None and board_id != self.board.board_id:
                return False
            if actor_of(event, data) == self.username:
                logger.debug(f"Suppressed own {event} echo")
                return False

        return handler(data)

    def _accept_card(self, card: Dict[str, Any]) -> bool:
        """Каноническая карточка из ответа сервера на своё место"""
        if self.board.replace_card(card):
            return True
        return self._reload(f"column {card.get('columnId')} of card {card.get('id')} is unknown locally")

    def _reload(self, reason: str) -> bool:
        logger.warning(f"Local board out of sync, reload required: {reason}")
        self.needs_reload = True
        return False

    def _on_board_updated(self, data: Dict[str, Any]) -> bool:
        updates = data.get("updates")
        if not isinstance(updates, dict):
            return False
        return self.board.update_board(updates)

    def _on_board_deleted(self, data: Dict[str, Any]) -> bool:
        self.board.deleted = True
        self.needs_reload = True
        return True

    def _on_column_created(self, data: Dict[str, Any]) -> bool:
        column = data.get("column")
        if not isinstance(column, dict) or not column.get("id"):
            return False
        inserted = self.board.insert_column(column)
        if not inserted:
            logger.debug(f"Duplicate column-created {column['id']} ignored")
        return inserted

    def _on_column_updated(self, data: Dict[str, Any]) -> bool:
        updates = data.get("updates")
        if not data.get("columnId") or not isinstance(updates, dict):
            return False
        return self.board.update_column(data["columnId"], updates)

    def _on_column_moved(self, data: Dict[str, Any]) -> bool:
        index = _index(data.get("newPosition"))
        if not data.get("columnId") or index is None:
            return False
        return self.board.move_column(data["columnId"], index)

    def _on_column_deleted(self, data: Dict[str, Any]) -> bool:
        if not data.get("columnId"):
            return False
        return self.board.remove_column(data["columnId"]) is not None

    def _on_card_created(self, data: Dict[str, Any]) -> bool:
        card = data.get("card")
        if not isinstance(card, dict) or not card.get("id"):
            return False
        if self.board.locate_card(card["id"]) is not None:
            logger.debug(f"Duplicate card-created {card['id']} ignored")
            return False
        if self.board.column(card.get("columnId")) is None:
            return self._reload(f"card {card['id']} created in unknown column {card.get('columnId')}")
        return self.board.insert_card(card)

    def _on_card_updated(self, data: Dict[str, Any]) -> bool:
        updates = data.get("updates")
        if not data.get("cardId") or not isinstance(updates, dict):
            return False
        return self.board.update_card(data["cardId"], updates)

    def _on_card_moved(self, data: Dict[str, Any]) -> bool:
        card_id = data.get("cardId")
        target_column_id = data.get("targetColumnId") or data.get("toColumnId")
        if not card_id or not target_column_id:
            return False
        if self.board.column(target_column_id) is None:
            return self._reload(f"card {card_id} moved to unknown column {target_column_id}")

        canonical = data.get("card") if isinstance(data.get("card"), dict) else None
        index = _index(data.get("newPosition"))

        if self.board.locate_card(card_id) is None:
            # Неизвестная карточка: вставляем каноническую, если она пришла
            if canonical is None:
                return self._reload(f"card {card_id} is unknown locally")
            position = canonical.get("position") if index is None else index
            return self.board.insert_card({**canonical, "columnId": target_column_id, "position": position})

        moved = self.board.move_card(card_id, target_column_id, 0 if index is None else index)
        if moved and canonical:
            self.board.update_card(card_id, {
                key: value for key, value in canonical.items() if key not in ("id", "position", "columnId")
            })
        return moved

    def _on_card_deleted(self, data: Dict[str, Any]) -> bool:
        if not data.get("cardId"):
            return False
        return self.board.remove_card(data["cardId"]) is not None

    def _on_user_connected(self, data: Dict[str, Any]) -> bool:
        if not data.get("username"):
            return False
        self.online_users[data["username"]] = {
            key: data.get(key) for key in ("username", "displayName", "color")
        }
        return True

    def _on_user_disconnected(self, data: Dict[str, Any]) -> bool:
        return self.online_users.pop(data.get("username"), None) is not None

    def _on_board_joined(self, data: Dict[str, Any]) -> bool:
        self.board_members = {
            member["socketId"]: member
            for member in data.get("members") or []
            if isinstance(member, dict) and member.get("socketId")
        }
        return True

    def _on_user_joined_board(self, data: Dict[str, Any]) -> bool:
        if data.get("boardId") != self.board.board_id or not data.get("socketId"):
            return False
        self.board_members[data["socketId"]] = {
            key: data.get(key) for key in ("username", "displayName", "color", "socketId")
        }
        return True

    def _on_user_left_board(self, data: Dict[str, Any]) -> bool:
        if data.get("boardId") != self.board.board_id:
            return False
        return self.board_members.pop(data.get("socketId"), None) is not None


def _index(value: Any) -> Optional[int]:
    """Индекс из события или None, если значение не целое"""
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value
