from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class CamelModel(BaseModel):
    """Базовая схема: поля в snake_case, на проводе camelCase"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserBase(CamelModel):
    """Базовая схема пользователя"""
    username: str = Field(..., min_length=2, max_length=20)
    display_name: str = Field(..., min_length=2, max_length=30)
    email: EmailStr
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator('username', 'display_name', mode='before')
    @classmethod
    def strip_whitespace(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class LoginRequest(UserBase):
    """Данные события user-login"""


class UserCreate(UserBase):
    """Схема для создания пользователя через HTTP"""

