import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from chatapp.database import get_db
from chatapp.repositories.message_repository import MessageRepository
from chatapp.repositories.user_repository import UserRepository
from chatapp.schemas.message import MessageCreate, DeleteMessageRequest, serialize_message
from chatapp.schemas.user import serialize_user
from chatapp.auth import get_current_user
from chatapp.models.user import User
from chatapp.uploads import ImageUploader, get_image_uploader
from chatapp.websocket_manager import manager

router = APIRouter()
logger = logging.getLogger(__name__)

def failure(message: str, status_code: int = status.HTTP_200_OK):
    content = {"success": False, "message": message}
    if status_code == status.HTTP_200_OK:
        return content
    return JSONResponse(status_code=status_code, content=content)

@router.get("/users")
async def get_users_for_sidebar(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """All other users plus unseen message counts keyed by sender id"""
    user_id = current_user.id
    try:
        users = await UserRepository(db).get_all_except(user_id)
        counts = await MessageRepository(db).get_unseen_counts(user_id)

        listed = {user.id for user in users}
        unseen_messages = {
            str(sender_id): count
            for sender_id, count in counts.items()
            if sender_id in listed and count > 0
        }

        return {
            "success": True,
            "users": [serialize_user(user) for user in users],
            "unseenMessages": unseen_messages
        }
    except Exception as e:
        logger.exception("Failed to load sidebar for user %s", user_id)
        return failure(str(e))

@router.get("/{selected_user_id}")
async def get_messages(
    selected_user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Conversation with the selected user; reading it marks their messages as seen"""
    user_id = current_user.id
    try:
        message_repo = MessageRepository(db)
        messages = await message_repo.get_conversation(user_id, selected_user_id)
        result = [serialize_message(message) for message in messages]

        marked = await message_repo.mark_conversation_seen(selected_user_id, user_id)
        if marked:
            logger.debug("Marked %s messages from %s to %s as seen", marked, selected_user_id, user_id)

        return {"success": True, "messages": result}
    except Exception as e:
        logger.exception("Failed to load messages between %s and %s", user_id, selected_user_id)
        return failure(str(e))

@router.put("/mark/{message_id}")
async def mark_message_as_seen(
    message_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    try:
        await MessageRepository(db).mark_seen(message_id)
        return {"success": True}
    except Exception as e:
        logger.exception("Failed to mark message %s as seen", message_id)
        return failure(str(e))

@router.post("/send/{receiver_id}")
async def send_message(
    receiver_id: int,
    message_data: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    uploader: ImageUploader = Depends(get_image_uploader)
):
    sender_id = current_user.id
    try:
        image_url = None
        if message_data.image:
            image_url = await uploader.upload(message_data.image)

        message = await MessageRepository(db).create(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=message_data.text,
            image=image_url
        )
        new_message = serialize_message(message)

        await manager.notify_new_message(new_message, receiver_id)

        return {"success": True, "newMessage": new_message}
    except Exception as e:
        logger.exception("Failed to send message from %s to %s", sender_id, receiver_id)
        return failure(str(e))

@router.delete("/delete-messages/{selected_user_id}")
async def delete_all_messages(
    selected_user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Wipe the whole conversation with the selected user"""
    user_id = current_user.id
    try:
        deleted = await MessageRepository(db).delete_conversation(user_id, selected_user_id)
        logger.info("User %s deleted %s messages with %s", user_id, deleted, selected_user_id)

        await manager.notify_messages_deleted(user_id, selected_user_id)

        return {"success": True, "message": "All messages deleted."}
    except Exception:
        logger.exception("Failed to delete conversation between %s and %s", user_id, selected_user_id)
        return failure("Failed to delete messages.")

@router.delete("/delete-message/{message_id}")
async def delete_message_by_id(
    message_id: int,
    payload: Optional[DeleteMessageRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete a single message; only its sender may do so"""
    user_id = current_user.id
    try:
        message_repo = MessageRepository(db)
        message = await message_repo.get_by_id(message_id)
        if not message:
            return failure("Message not found.", status.HTTP_404_NOT_FOUND)

        requester_id = user_id
        if payload is not None and payload.user_id is not None:
            requester_id = payload.user_id

        if message.sender_id != user_id or requester_id != user_id:
            return failure("You can only delete your own messages.", status.HTTP_403_FORBIDDEN)

        receiver_id = message.receiver_id
        await message_repo.delete(message)

        await manager.notify_message_deleted(message_id, receiver_id)

        return {"success": True, "message": "Message deleted successfully."}
    except Exception:
        logger.exception("Failed to delete message %s", message_id)
        return failure("Failed to delete message.", status.HTTP_500_INTERNAL_SERVER_ERROR)
