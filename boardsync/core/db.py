from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from boardsync.core.config import settings

# Базовый класс для моделей
Base = declarative_base()


def _engine_options(database_url: str) -> dict:
    options = {"echo": settings.database_echo}
    # SQLite-файл не делим между event loop'ами через пул
    if database_url.startswith("sqlite"):
        options["poolclass"] = NullPool
    return options


# Асинхронный движок
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# Сессии
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def init_models() -> None:
    """Создание таблиц без миграций (dev/тесты)"""
    import boardsync.db.models  # noqa: F401  регистрирует модели в metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Функция для dependency injection в FastAPI
async def get_db():
    async with SessionLocal() as session:
        yield session
