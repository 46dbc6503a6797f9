import logging
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.core.config import settings
from boardsync.domains.boards.entities import Board
from boardsync.domains.boards.services import BoardService
from boardsync.domains.collaboration.events import timestamp
from boardsync.domains.export.schemas import ExportBacklogRequest

logger = logging.getLogger(__name__)


class ExportError(Exception):
    """Внешний workflow не принял экспорт"""


class ExportService:
    """Передача снимка доски во внешний workflow (webhook)"""

    def __init__(
        self,
        session: AsyncSession,
        webhook_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.session = session
        self.board_service = BoardService(session)
        self.webhook_url = webhook_url or settings.export_webhook_url
        self.timeout = timeout if timeout is not None else settings.export_timeout_seconds
        self.transport = transport

    async def export_backlog(self, request: ExportBacklogRequest) -> Dict[str, Any]:
        """Снимок доски -> POST в webhook; NotFoundError если доски нет"""
        board = await self.board_service.find_board(request.board_id, include_archived=request.include_archived)
        board_name = request.board_name or board.name

        payload = {
            "boardId": str(board.uuid),
            "boardName": board_name,
            "emailTo": request.email_to,
            "includeArchived": request.include_archived,
            "boardData": self.snapshot(board),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Backlog export of board {board.uuid} failed: {e}")
            raise ExportError(f"Export webhook failed: {e}") from e

        logger.info(f"Backlog of board {board.uuid} exported to {request.email_to}")
        return {
            "success": True,
            "message": "Export started",
            "data": {
                "boardId": str(board.uuid),
                "boardName": board_name,
                "emailTo": request.email_to,
                "totalCards": board.count_cards(),
                "totalColumns": len(board.columns),
                "exportDate": timestamp(),
                "webhookResponse": self._response_body(response),
            },
        }

    @staticmethod
    def snapshot(board: Board) -> Dict[str, Any]:
        """Данные доски для workflow"""
        data = board.to_dict()
        return {
            "name": data["name"],
            "description": data["description"],
            "createdAt": data["createdAt"],
            "updatedAt": data["updatedAt"],
            "columns": [
                {
                    "id": column["id"],
                    "name": column["name"],
                    "description": column["description"],
                    "position": column["position"],
                    "color": column["color"],
                    "isActive": column["isActive"],
                    "cards": [
                        {
                            key: card[key]
                            for key in (
                                "id", "title", "description", "priority", "assignedTo",
                                "dueDate", "tags", "position", "isActive", "createdAt", "updatedAt"
                            )
                        }
                        for card in column["cards"]
                    ],
                }
                for column in data["columns"]
            ],
        }

    @staticmethod
    def _response_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text
