import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from auth import auth_service
from database import AsyncSessionLocal
from exceptions import AuthenticationError
from services import connection_registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, token: str = ""):
    """Per-user push channel; the client only listens for notification_pop events"""
    try:
        async with AsyncSessionLocal() as db:
            user = await auth_service.verify(db, token)
            await db.commit()
    except AuthenticationError as exc:
        logger.info("Rejected realtime connection: %s", exc.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection_registry.register(user.id, websocket)
    try:
        while True:
            # Inbound messages are ignored; receiving keeps the disconnect visible
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        connection_registry.unregister(user.id, websocket)
