import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class BoardApiClient:
    """HTTP-клиент REST API доски.

    Токен сессии из ``user-logged-in`` передаётся как bearer, чтобы сервер
    знал автора мутации и не присылал его соединению эхо. Ответы не 2xx
    поднимают ``httpx.HTTPStatusError``.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0
    ):
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        self.token = token

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BoardApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # Доски

    async def get_default_board(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/boards/default")

    async def get_board(self, board_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/boards/{board_id}")

    async def list_boards(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/api/boards")

    async def create_board(self, name: str, **fields: Any) -> Dict[str, Any]:
        return await self._request("POST", "/api/boards", json={"name": name, **fields})

    async def update_board(self, board_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/api/boards/{board_id}", json=updates)

    async def delete_board(self, board_id: str) -> None:
        await self._request("DELETE", f"/api/boards/{board_id}")

    # Колонки

    async def create_column(
        self,
        board_id: str,
        name: str,
        position: Optional[int] = None,
        **fields: Any
    ) -> Dict[str, Any]:
        payload = {"boardId": board_id, "name": name, **fields}
        if position is not None:
            payload["position"] = position
        return await self._request("POST", "/api/columns", json=payload)

    async def update_column(self, column_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/api/columns/{column_id}", json=updates)

    async def move_column(self, column_id: str, new_position: int) -> Dict[str, Any]:
        return await self._request(
            "PATCH", f"/api/columns/{column_id}/move", json={"newPosition": new_position}
        )

    async def delete_column(self, column_id: str) -> None:
        await self._request("DELETE", f"/api/columns/{column_id}")

    # Карточки

    async def create_card(
        self,
        column_id: str,
        board_id: str,
        title: str,
        position: Optional[int] = None,
        **fields: Any
    ) -> Dict[str, Any]:
        payload = {"columnId": column_id, "boardId": board_id, "title": title, **fields}
        if position is not None:
            payload["position"] = position
        return await self._request("POST", "/api/cards", json=payload)

    async def update_card(self, card_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/api/cards/{card_id}", json=updates)

    async def move_card(self, card_id: str, target_column_id: str, new_position: int) -> Dict[str, Any]:
        return await self._request(
            "PATCH",
            f"/api/cards/{card_id}/move",
            json={"targetColumnId": target_column_id, "newPosition": new_position}
        )

    async def delete_card(self, card_id: str) -> None:
        await self._request("DELETE", f"/api/cards/{card_id}")

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        response = await self._client.request(method, url, headers=headers, **kwargs)
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        return response.json()
