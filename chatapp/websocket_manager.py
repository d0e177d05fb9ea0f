import json
import logging
from typing import Any, List, Tuple

from fastapi import WebSocket, status

from chatapp.models.user import User
from chatapp.presence import PresenceService

logger = logging.getLogger(__name__)

class ConnectionManager:
    def __init__(self, presence: PresenceService):
        self.presence = presence

    async def connect(self, websocket: WebSocket, user: User):
        await websocket.accept()

        previous = self.presence.register(user.id, websocket)
        if previous is not None:
            logger.info("User %s reconnected, replacing previous socket", user.id)
        else:
            logger.info("User %s connected", user.id)

        await self.broadcast_online_users()

    async def disconnect(self, websocket: WebSocket, user: User):
        if self.presence.unregister(user.id, websocket):
            logger.info("User %s disconnected", user.id)
            await self.broadcast_online_users()

    async def drop_user(self, user_id: int, reason: str = "Account deleted"):
        """Close a user's live socket and tell everyone they went offline."""
        websocket = self.presence.lookup(user_id)
        if websocket is None or not self.presence.unregister(user_id, websocket):
            return

        try:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=reason)
        except Exception as e:
            logger.warning("Failed to close socket of user %s: %s", user_id, e)
        logger.info("User %s dropped: %s", user_id, reason)
        await self.broadcast_online_users()

    async def send_event(self, websocket: WebSocket, event: str, data: Any) -> bool:
        try:
            await websocket.send_text(json.dumps({"type": event, "data": data}))
            return True
        except Exception as e:
            logger.warning("Failed to send %s: %s", event, e)
            return False

    async def emit_to_user(self, user_id: int, event: str, data: Any) -> bool:
        """
        Push an event to a user's live socket, if there is one.

        The return value only says whether the frame was handed to a connection.
        Nothing is queued for offline users; they pick the change up on their
        next fetch.
        """
        websocket = self.presence.lookup(user_id)
        if websocket is None:
            logger.debug("User %s offline, %s not pushed", user_id, event)
            return False

        delivered = await self.send_event(websocket, event, data)
        if not delivered:
            self.presence.unregister(user_id, websocket)
        return delivered

    async def broadcast(self, event: str, data: Any):
        message = json.dumps({"type": event, "data": data})
        dead: List[Tuple[int, WebSocket]] = []

        for user_id in self.presence.online_user_ids():
            websocket = self.presence.lookup(user_id)
            if websocket is None:
                continue
            try:
                await websocket.send_text(message)
            except Exception as e:
                logger.warning("Dropping socket of user %s: %s", user_id, e)
                dead.append((user_id, websocket))

        for user_id, websocket in dead:
            self.presence.unregister(user_id, websocket)

    async def broadcast_online_users(self):
        await self.broadcast("getOnlineUsers", self.get_connected_users())

    async def notify_new_message(self, message_data: dict, receiver_id: int) -> bool:
        delivered = await self.emit_to_user(receiver_id, "newMessage", message_data)
        logger.info(
            "Message %s to user %s %s",
            message_data.get("_id"), receiver_id, "pushed" if delivered else "stored only"
        )
        return delivered

    async def notify_message_deleted(self, message_id: int, receiver_id: int) -> bool:
        return await self.emit_to_user(receiver_id, "messageDeleted", {"messageId": message_id})

    async def notify_messages_deleted(self, by_user_id: int, receiver_id: int) -> bool:
        return await self.emit_to_user(receiver_id, "messagesDeleted", {"by": by_user_id})

    def get_connected_users(self) -> List[int]:
        return self.presence.online_user_ids()

    def is_user_online(self, user_id: int) -> bool:
        return self.presence.is_online(user_id)

presence = PresenceService()
manager = ConnectionManager(presence)
