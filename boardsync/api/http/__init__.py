from boardsync.api.http.health import router as health_router
from boardsync.api.http.boards import router as boards_router
from boardsync.api.http.columns import router as columns_router
from boardsync.api.http.cards import router as cards_router
from boardsync.api.http.users import router as users_router
from boardsync.api.http.export import router as export_router

__all__ = [
    "health_router",
    "boards_router",
    "columns_router",
    "cards_router",
    "users_router",
    "export_router"
]
