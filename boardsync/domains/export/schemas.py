from pydantic import EmailStr, Field
from typing import Optional
import uuid

from boardsync.domains.identity.schemas import CamelModel


class ExportBacklogRequest(CamelModel):
    """Запрос на экспорт бэклога доски во внешний workflow"""
    board_id: uuid.UUID
    email_to: EmailStr
    board_name: Optional[str] = Field(None, max_length=100)
    include_archived: bool = False
