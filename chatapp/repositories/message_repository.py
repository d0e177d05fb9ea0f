from typing import Optional, List, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, and_, or_, func

from chatapp.models.message import Message

def conversation_filter(user_a: int, user_b: int):
    """Messages exchanged between two users, in either direction."""
    return or_(
        and_(Message.sender_id == user_a, Message.receiver_id == user_b),
        and_(Message.sender_id == user_b, Message.receiver_id == user_a)
    )

class MessageRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        sender_id: int,
        receiver_id: int,
        text: Optional[str] = None,
        image: Optional[str] = None
    ) -> Message:
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=text,
            image=image
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def get_by_id(self, message_id: int) -> Optional[Message]:
        result = await self.db.execute(select(Message).where(Message.id == message_id))
        return result.scalar_one_or_none()

    async def get_conversation(self, user_id: int, other_id: int) -> List[Message]:
        """Conversation between two users in insertion order."""
        result = await self.db.execute(
            select(Message)
            .where(conversation_filter(user_id, other_id))
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(result.scalars().all())

    async def mark_conversation_seen(self, sender_id: int, receiver_id: int) -> int:
        """Flag everything sender_id sent to receiver_id as seen."""
        result = await self.db.execute(
            update(Message)
            .where(
                and_(
                    Message.sender_id == sender_id,
                    Message.receiver_id == receiver_id,
                    Message.seen.is_(False)
                )
            )
            .values(seen=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def mark_seen(self, message_id: int) -> None:
        await self.db.execute(
            update(Message)
            .where(Message.id == message_id)
            .values(seen=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def get_unseen_counts(self, receiver_id: int) -> Dict[int, int]:
        """Number of unseen messages addressed to receiver_id, keyed by sender."""
        result = await self.db.execute(
            select(Message.sender_id, func.count(Message.id))
            .where(
                and_(
                    Message.receiver_id == receiver_id,
                    Message.seen.is_(False)
                )
            )
            .group_by(Message.sender_id)
        )
        return {sender_id: count for sender_id, count in result.all()}

    async def delete(self, message: Message) -> None:
        await self.db.delete(message)
        await self.db.commit()

    async def delete_conversation(self, user_id: int, other_id: int) -> int:
        result = await self.db.execute(
            delete(Message)
            .where(conversation_filter(user_id, other_id))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0
