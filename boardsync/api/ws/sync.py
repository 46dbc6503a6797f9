from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import logging

from boardsync.domains.collaboration.session import SessionHandler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket эндпоинт синхронизации досок"""
    hub = websocket.app.state.hub
    connection = await hub.connect(websocket)
    handler = SessionHandler(connection, hub, websocket.app.state.session_factory)

    try:
        while True:
            data = await websocket.receive_text()
            await handler.handle_text(data)

    except WebSocketDisconnect:
        logger.info(f"Connection {connection.id} closed by client")

    except Exception as e:
        logger.error(f"WebSocket error on connection {connection.id}: {e}")

    finally:
        await handler.close()
