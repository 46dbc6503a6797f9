from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from boardsync.api.http import health_router
from boardsync.api.router import api_router
from boardsync.api.ws.sync import router as websocket_router
from boardsync.core.config import settings
from boardsync.core.db import SessionLocal, engine, init_models
from boardsync.domains.collaboration.hub import ConnectionHub
from boardsync.domains.collaboration.presence import PresenceRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Реестр присутствия и хаб соединений живут ровно столько, сколько приложение"""
    if settings.auto_create_tables:
        await init_models()

    app.state.presence = PresenceRegistry()
    app.state.hub = ConnectionHub(app.state.presence)
    app.state.session_factory = SessionLocal
    logger.info("BoardSync started")

    yield

    await app.state.hub.close()
    await engine.dispose()
    logger.info("BoardSync stopped")


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    app = FastAPI(
        title="BoardSync",
        description="Совместная канбан-доска с синхронизацией в реальном времени",
        version="1.0.0",
        lifespan=lifespan
    )

    # Настройка CORS для работы с frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(api_router)
    app.include_router(websocket_router)

    @app.get("/")
    async def root():
        """Корневой эндпоинт"""
        return {
            "message": "BoardSync API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
            "websocket": "/ws"
        }

    return app


app = create_app()
