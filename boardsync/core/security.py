from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt

from boardsync.core.config import settings


def create_session_token(
    username: str,
    connection_id: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Создание токена сессии, привязанного к WebSocket-соединению"""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.session_token_expire_minutes)

    to_encode = {
        "sub": username,
        "sid": connection_id,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Проверка токена и извлечение данных"""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    if not payload.get("sub"):
        return None
    return payload
