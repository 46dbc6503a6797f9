from fastapi import APIRouter

from boardsync.api.http import (
    boards_router, columns_router, cards_router, users_router, export_router
)

api_router = APIRouter(prefix="/api")
api_router.include_router(boards_router)
api_router.include_router(columns_router)
api_router.include_router(cards_router)
api_router.include_router(users_router)
api_router.include_router(export_router)
