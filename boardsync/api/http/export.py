from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict

from boardsync.api.http.deps import http_error
from boardsync.core.db import get_db
from boardsync.core.exceptions import NotFoundError
from boardsync.domains.export.schemas import ExportBacklogRequest
from boardsync.domains.export.services import ExportError, ExportService

router = APIRouter(prefix="/export", tags=["export"])


def get_export_service(db: AsyncSession = Depends(get_db)) -> ExportService:
    return ExportService(db)


@router.post("/backlog")
async def export_backlog(
    export_request: ExportBacklogRequest,
    export_service: ExportService = Depends(get_export_service)
) -> Dict[str, Any]:
    """Экспорт бэклога доски во внешний workflow"""
    try:
        return await export_service.export_backlog(export_request)
    except NotFoundError as e:
        raise http_error(e)
    except ExportError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
