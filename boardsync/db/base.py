import uuid

from sqlalchemy import Column, DateTime, Uuid

from boardsync.core.db import Base
from boardsync.domains.identity.entities import utcnow


class BaseModel(Base):
    """Общие поля: UUID-ключ и отметки времени"""
    __abstract__ = True

    uuid = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
