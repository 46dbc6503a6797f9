from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from boardsync.core.db import get_db
from boardsync.core.exceptions import DuplicateError, InvalidOperationError, NotFoundError
from boardsync.domains.collaboration.dispatch import MutationGateway
from boardsync.domains.collaboration.hub import ConnectionHub


def get_hub(request: Request) -> ConnectionHub:
    return request.app.state.hub


async def get_gateway(
    db: AsyncSession = Depends(get_db),
    hub: ConnectionHub = Depends(get_hub)
) -> MutationGateway:
    """Шлюз мутаций с рассылкой через хаб соединений приложения"""
    return MutationGateway(db, hub)


def http_error(error: Exception) -> HTTPException:
    """Перевод доменной ошибки в HTTP-ответ"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, DuplicateError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, InvalidOperationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")
