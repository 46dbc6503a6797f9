from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from boardsync.core.security import verify_token
from boardsync.domains.identity.entities import Actor

ANONYMOUS_ACTOR = "anonymous"

# Токен не обязателен: без него мутация выполняется от имени anonymous
security = HTTPBearer(auto_error=False)


async def get_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Actor:
    """Автор мутации из токена сессии (username и соединение)"""
    if credentials is None:
        return Actor(ANONYMOUS_ACTOR)

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Actor(payload["sub"], payload.get("sid"))
