from sqlalchemy import Column, Integer, Text, Boolean, String, Index
from .base import BaseModel

class Message(BaseModel):
    __tablename__ = "messages"

    # No foreign keys: deleting a user keeps the conversation history intact
    sender_id = Column(Integer, nullable=False, index=True)
    receiver_id = Column(Integer, nullable=False, index=True)
    text = Column(Text, nullable=True)
    image = Column(String(500), nullable=True)
    seen = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_messages_pair", "sender_id", "receiver_id"),
    )
