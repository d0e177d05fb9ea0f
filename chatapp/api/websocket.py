import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, status
from fastapi.websockets import WebSocketState
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from chatapp.database import get_db
from chatapp.schemas.message import WebSocketMessageData, DeleteMessageNotice
from chatapp.websocket_manager import manager
from chatapp.auth import get_user_from_token
from chatapp.models.user import User

router = APIRouter()
logger = logging.getLogger(__name__)

@router.websocket("/chat")
async def websocket_chat(
    websocket: WebSocket,
    token: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Token required")
        return

    user = await get_user_from_token(token, db)
    # the session is only needed for the handshake
    await db.close()
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return

    await manager.connect(websocket, user)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                frame = WebSocketMessageData(**json.loads(data))
            except (json.JSONDecodeError, TypeError, ValidationError):
                await manager.send_event(websocket, "error", {"message": "Invalid message format"})
                continue

            try:
                await handle_websocket_message(frame.action, frame.data, user, websocket)
            except Exception as e:
                logger.exception("Error handling %s from user %s", frame.action, user.id)
                await manager.send_event(websocket, "error", {"message": f"Error processing message: {e}"})

    except WebSocketDisconnect:
        pass
    except Exception:
        # e.g. a binary frame, which receive_text can not decode
        logger.exception("Socket of user %s failed", user.id)
        if websocket.application_state == WebSocketState.CONNECTED:
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    finally:
        await manager.disconnect(websocket, user)

async def handle_websocket_message(action: str, payload: dict, user: User, websocket: WebSocket):

    if action == "deleteMessage":
        await handle_delete_message(payload, user, websocket)

    elif action == "ping":
        await manager.send_event(websocket, "pong", None)

    else:
        await manager.send_event(websocket, "error", {"message": f"Unknown action: {action}"})

async def handle_delete_message(payload: dict, user: User, websocket: WebSocket):
    """Relay a client-side deletion notice to the other participant"""
    try:
        notice = DeleteMessageNotice(**payload)
    except ValidationError:
        await manager.send_event(websocket, "error", {"message": "Invalid deleteMessage payload"})
        return

    delivered = await manager.notify_message_deleted(notice.message_id, notice.receiver_id)
    logger.debug(
        "Deletion notice for message %s from user %s %s",
        notice.message_id, user.id, "relayed" if delivered else "dropped"
    )

@router.get("/online-users")
async def get_online_users():
    connected_users = manager.get_connected_users()
    return {"online_users": connected_users, "count": len(connected_users)}
