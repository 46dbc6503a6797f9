from sqlalchemy import Column, String, Boolean, DateTime

from boardsync.db.base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    username = Column(String(20), unique=True, index=True, nullable=False)
    display_name = Column(String(30), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    color = Column(String(16), nullable=False, default="#007bff")
    is_online = Column(Boolean, default=False, nullable=False)
    last_seen = Column(DateTime(timezone=True), nullable=True)
    socket_id = Column(String(64), index=True, nullable=True)
