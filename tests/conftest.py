import json
import os
import tempfile

# Настройки читаются при импорте boardsync, поэтому окружение задаём до него
_DB_DIR = tempfile.mkdtemp(prefix="boardsync-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["AUTO_CREATE_TABLES"] = "true"

import pytest
from sqlalchemy import create_engine

import boardsync.db.models  # noqa: F401
from boardsync.core.config import settings
from boardsync.core.db import Base, SessionLocal
from boardsync.domains.collaboration.hub import ConnectionHub

sync_engine = create_engine(settings.database_url.replace("+aiosqlite", ""))


class FakeSocket:
    """Сокет в памяти: запоминает отправленные события"""

    def __init__(self, fail: bool = False):
        self.accepted = False
        self.fail = fail
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text: str):
        if self.fail:
            raise RuntimeError("socket is closed")
        self.sent.append(json.loads(text))

    def events(self, event_type=None):
        return [message for message in self.sent if event_type is None or message["type"] == event_type]

    def last(self, event_type):
        matching = self.events(event_type)
        return matching[-1]["data"] if matching else None

    def clear(self):
        self.sent.clear()


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=sync_engine)
    Base.metadata.create_all(bind=sync_engine)
    yield


@pytest.fixture
async def db_session():
    async with SessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    return SessionLocal


@pytest.fixture
def hub():
    return ConnectionHub()


@pytest.fixture
def socket_factory():
    return FakeSocket
