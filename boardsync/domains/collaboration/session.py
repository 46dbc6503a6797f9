import functools
import logging
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from boardsync.core.exceptions import DuplicateError
from boardsync.core.security import create_session_token
from boardsync.db.repositories.board_repository import BoardRepository
from boardsync.domains.collaboration.events import (
    MUTATION_EVENTS, EventType, actor_field, missing_fields, parse_message, timestamp
)
from boardsync.domains.collaboration.hub import Connection, ConnectionHub
from boardsync.domains.identity.schemas import LoginRequest
from boardsync.domains.identity.services import IdentityService

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


def validation_message(error: ValidationError) -> str:
    """Читаемое сообщение из ошибки валидации pydantic"""
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item["loc"])
        parts.append(f"{field}: {item['msg']}" if field else item["msg"])
    return "; ".join(parts)


class SessionHandler:
    """Протокол одного соединения: вход, доски, ретрансляция мутаций.

    Состояния: ANONYMOUS -> AUTHENTICATED -> CLOSED. Сообщения соединения
    обрабатываются последовательно; ошибка обработки одного сообщения
    отвечает ``error`` и не прерывает цикл приёма.
    """

    def __init__(self, connection: Connection, hub: ConnectionHub, session_factory):
        self.connection = connection
        self.hub = hub
        self.session_factory = session_factory
        self.state = SessionState.ANONYMOUS
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[None]]] = {
            EventType.USER_LOGIN.value: self.on_login,
            EventType.JOIN_BOARD.value: self.on_join_board,
            EventType.LEAVE_BOARD.value: self.on_leave_board,
            EventType.PING.value: self.on_ping,
        }

    @property
    def user(self):
        return self.connection.user

    @property
    def authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED and self.user is not None

    async def handle_text(self, raw: str) -> None:
        """Обработка одного входящего сообщения"""
        if self.state is SessionState.CLOSED:
            return

        try:
            message = parse_message(raw)
        except ValidationError:
            await self.send_error("Malformed message: expected {\"type\": ..., \"data\": {...}}")
            return

        handler = self._handlers.get(message.type)
        if handler is None and message.type in MUTATION_EVENTS:
            handler = functools.partial(self.relay_mutation, EventType(message.type))

        if handler is None:
            await self.send_error(f"Unknown event type: {message.type}")
            return

        try:
            await handler(message.data)
        except Exception:
            logger.exception(f"Error handling {message.type} from connection {self.connection.id}")
            await self.send_error(f"Failed to process {message.type}")

    async def on_login(self, data: Dict[str, Any]) -> None:
        if self.authenticated:
            await self._login_error(f"Already logged in as {self.user.username}")
            return

        try:
            login_data = LoginRequest.model_validate(data)
        except ValidationError as e:
            await self._login_error(validation_message(e))
            return

        try:
            async with self.session_factory() as session:
                user = await IdentityService(session).login(login_data, self.connection.id)
        except DuplicateError as e:
            await self._login_error(str(e))
            return
        except SQLAlchemyError as e:
            logger.error(f"Login of {login_data.username} failed: {e}")
            await self._login_error("Login failed, please try again")
            return

        displaced = self.hub.presence.register(self.connection.id, user)
        if displaced is not None:
            await self._displace(displaced)
        self.connection.user = user
        self.state = SessionState.AUTHENTICATED
        logger.info(f"User {user.username} logged in on connection {self.connection.id}")

        await self.send(EventType.USER_LOGGED_IN, {
            "success": True,
            "user": user.public_profile(),
            "token": create_session_token(user.username, self.connection.id),
            "socketId": self.connection.id,
        })
        await self.hub.broadcast(EventType.USER_CONNECTED, {
            **user.public_profile(),
            "timestamp": timestamp(),
        })

    async def on_join_board(self, data: Dict[str, Any]) -> None:
        if not self.authenticated:
            await self.send_error("Login required before joining a board")
            return

        board_id = self._board_id(data)
        if board_id is None:
            await self.send_error("Invalid or missing boardId")
            return

        async with self.session_factory() as session:
            board = await BoardRepository(session).get_by_uuid(board_id)
        if board is None:
            await self.send_error(f"Board with ID {board_id} not found")
            return

        self.hub.join(self.connection.id, board.uuid)
        logger.info(f"User {self.user.username} joined board {board.uuid}")

        await self.send(EventType.BOARD_JOINED, {
            "success": True,
            "boardId": str(board.uuid),
            "members": [member.member_info() for member in self.hub.members(board.uuid) if member.user],
        })
        await self.hub.broadcast_to_board(board.uuid, EventType.USER_JOINED_BOARD, {
            **self.connection.member_info(),
            "boardId": str(board.uuid),
            "timestamp": timestamp(),
        }, exclude=self.connection.id)

    async def on_leave_board(self, data: Dict[str, Any]) -> None:
        if not self.authenticated:
            await self.send_error("Login required before leaving a board")
            return

        board_id = self._board_id(data)
        if board_id is None:
            await self.send_error("Invalid or missing boardId")
            return

        was_member = self.hub.leave(self.connection.id, board_id)
        await self.send(EventType.BOARD_LEFT, {"success": was_member, "boardId": str(board_id)})
        if not was_member:
            return

        logger.info(f"User {self.user.username} left board {board_id}")
        await self.hub.broadcast_to_board(board_id, EventType.USER_LEFT_BOARD, {
            **self.connection.member_info(),
            "boardId": str(board_id),
            "timestamp": timestamp(),
        }, exclude=self.connection.id)

    async def relay_mutation(self, event: EventType, data: Dict[str, Any]) -> None:
        """Пересылка мутации клиента в комнату доски, кроме отправителя"""
        if not self.authenticated:
            await self.send_error("Login required before sending board events")
            return

        board_id = self._board_id(data)
        if board_id is None:
            await self.send_error("Invalid or missing boardId")
            return

        missing = missing_fields(event, data)
        if missing:
            await self.send_error(f"Invalid {event.value}: missing {', '.join(missing)}")
            return

        payload = dict(data)
        payload["boardId"] = str(board_id)
        payload[actor_field(event)] = self.user.username
        payload["timestamp"] = timestamp()

        delivered = await self.hub.broadcast_to_board(board_id, event, payload, exclude=self.connection.id)
        logger.info(f"Relayed {event.value} from {self.user.username} to {delivered} connection(s) on board {board_id}")

    async def _displace(self, connection_id: str) -> None:
        """Прежнее соединение пользователя теряет вход и покидает комнаты"""
        connection = self.hub.get(connection_id)
        if connection is None or connection.user is None:
            return

        member_info = connection.member_info()
        for board_key in list(connection.boards):
            self.hub.leave(connection_id, board_key)
            await self.hub.broadcast_to_board(board_key, EventType.USER_LEFT_BOARD, {
                **member_info,
                "boardId": board_key,
                "timestamp": timestamp(),
            }, exclude=connection_id)

        connection.user = None
        logger.info(f"Connection {connection_id} displaced by a newer login of {member_info['username']}")
        await self.hub.send(connection_id, EventType.ERROR, {
            "message": "Logged in from another connection",
        })

    async def on_ping(self, data: Dict[str, Any]) -> None:
        await self.send(EventType.PONG, {"timestamp": timestamp()})

    async def close(self) -> None:
        """Отключение: выход из комнат, снятие присутствия, уведомление всех"""
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED

        self.hub.disconnect(self.connection.id)
        user = self.hub.presence.unregister(self.connection.id)
        if user is None:
            return

        try:
            async with self.session_factory() as session:
                await IdentityService(session).disconnect_connection(self.connection.id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist offline status of {user.username}: {e}")

        logger.info(f"User {user.username} disconnected")
        await self.hub.broadcast(EventType.USER_DISCONNECTED, {
            **user.public_profile(),
            "timestamp": timestamp(),
        })

    async def send(self, event: EventType, data: Dict[str, Any]) -> bool:
        return await self.hub.send(self.connection.id, event, data)

    async def send_error(self, message: str) -> bool:
        return await self.send(EventType.ERROR, {"message": message})

    async def _login_error(self, message: str) -> None:
        await self.send(EventType.USER_LOGIN_ERROR, {"success": False, "message": message})

    @staticmethod
    def _board_id(data: Dict[str, Any]) -> Optional[uuid.UUID]:
        try:
            return uuid.UUID(str(data.get("boardId")))
        except ValueError:
            return None
