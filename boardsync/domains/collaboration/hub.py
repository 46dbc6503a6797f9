import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Set, Union

from boardsync.domains.collaboration.events import EventType, make_message
from boardsync.domains.collaboration.presence import PresenceRegistry
from boardsync.domains.identity.entities import User

logger = logging.getLogger(__name__)

BoardKey = Union[str, uuid.UUID]


class Connection:
    """Живое соединение: сокет, пользователь после входа и комнаты досок"""

    def __init__(self, websocket, connection_id: Optional[str] = None):
        self.id = connection_id or uuid.uuid4().hex
        self.websocket = websocket
        self.user: Optional[User] = None
        self.boards: Set[str] = set()

    def member_info(self) -> Dict[str, Any]:
        info = self.user.public_profile() if self.user else {}
        info["socketId"] = self.id
        return info

    def __repr__(self) -> str:
        username = self.user.username if self.user else None
        return f"Connection(id={self.id}, user={username}, boards={len(self.boards)})"


class ConnectionHub:
    """Реестр соединений и комнат досок, рассылка событий"""

    def __init__(self, presence: Optional[PresenceRegistry] = None):
        self.presence = presence or PresenceRegistry()
        # Хранилище активных соединений: {connection_id: Connection}
        self.connections: Dict[str, Connection] = {}
        # Комнаты: {board_id: {connection_id}}
        self.rooms: Dict[str, Set[str]] = {}

    async def connect(self, websocket, connection_id: Optional[str] = None) -> Connection:
        """Принятие сокета и регистрация соединения"""
        await websocket.accept()
        connection = Connection(websocket, connection_id)
        self.connections[connection.id] = connection
        logger.info(f"Connection {connection.id} accepted")
        return connection

    def disconnect(self, connection_id: str) -> Optional[Connection]:
        """Удаление соединения из всех комнат"""
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return None

        for board_key in list(connection.boards):
            self._leave_room(board_key, connection_id)
        connection.boards.clear()
        logger.info(f"Connection {connection_id} removed")
        return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def join(self, connection_id: str, board_id: BoardKey) -> bool:
        connection = self.connections.get(connection_id)
        if connection is None:
            return False

        board_key = str(board_id)
        self.rooms.setdefault(board_key, set()).add(connection_id)
        connection.boards.add(board_key)
        return True

    def leave(self, connection_id: str, board_id: BoardKey) -> bool:
        """Выход из комнаты; False если соединение в ней не было"""
        connection = self.connections.get(connection_id)
        board_key = str(board_id)
        if connection is None or board_key not in connection.boards:
            return False

        connection.boards.discard(board_key)
        self._leave_room(board_key, connection_id)
        return True

    def members(self, board_id: BoardKey) -> List[Connection]:
        """Соединения, подключённые к доске"""
        return [
            self.connections[connection_id]
            for connection_id in sorted(self.rooms.get(str(board_id), ()))
            if connection_id in self.connections
        ]

    async def send(self, connection_id: str, event: EventType, data: Dict[str, Any]) -> bool:
        """Отправка события одному соединению"""
        return await self._deliver(connection_id, make_message(event, data))

    async def broadcast_to_board(
        self,
        board_id: BoardKey,
        event: EventType,
        data: Dict[str, Any],
        exclude: Optional[str] = None
    ) -> int:
        """Рассылка всем участникам доски, кроме exclude; возвращает число доставок"""
        targets = [
            connection_id for connection_id in self.rooms.get(str(board_id), ())
            if connection_id != exclude
        ]
        return await self._fan_out(targets, make_message(event, data))

    async def broadcast(
        self,
        event: EventType,
        data: Dict[str, Any],
        exclude: Optional[str] = None
    ) -> int:
        """Рассылка всем соединениям"""
        targets = [connection_id for connection_id in self.connections if connection_id != exclude]
        return await self._fan_out(targets, make_message(event, data))

    async def close(self) -> None:
        """Остановка: забываем все соединения и присутствие"""
        for connection_id in list(self.connections):
            self.disconnect(connection_id)
        self.rooms.clear()
        self.presence.clear()

    async def _fan_out(self, targets: List[str], message: str) -> int:
        if not targets:
            return 0
        results = await asyncio.gather(*(self._deliver(target, message) for target in targets))
        return sum(1 for delivered in results if delivered)

    async def _deliver(self, connection_id: str, message: str) -> bool:
        connection = self.connections.get(connection_id)
        if connection is None:
            return False

        try:
            await connection.websocket.send_text(message)
        except Exception as e:
            # Отключенный сокет удаляем, остальные не затрагиваем
            logger.warning(f"Send to connection {connection_id} failed: {e}")
            self.disconnect(connection_id)
            return False
        return True

    def _leave_room(self, board_key: str, connection_id: str) -> None:
        room = self.rooms.get(board_key)
        if room is None:
            return
        room.discard(connection_id)
        if not room:
            del self.rooms[board_key]
