from fastapi import APIRouter, Depends

from boardsync.api.http.deps import get_hub
from boardsync.domains.collaboration.hub import ConnectionHub

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(hub: ConnectionHub = Depends(get_hub)):
    """Проверка работоспособности"""
    return {
        "status": "ok",
        "connections": len(hub.connections),
        "onlineUsers": len(hub.presence),
    }
