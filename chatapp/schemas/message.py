from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from chatapp.schemas.user import CamelModel

class MessageCreate(CamelModel):
    text: Optional[str] = None
    # base64 data URI, uploaded to the image host before the message is stored
    image: Optional[str] = None

class MessageResponse(CamelModel):
    id: int = Field(alias="_id")
    sender_id: int
    receiver_id: int
    text: Optional[str] = None
    image: Optional[str] = None
    seen: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class DeleteMessageRequest(CamelModel):
    user_id: Optional[int] = None

class WebSocketMessageData(BaseModel):
    action: str
    data: dict = {}

class DeleteMessageNotice(CamelModel):
    message_id: int
    receiver_id: int

def serialize_message(message) -> dict:
    return MessageResponse.model_validate(message).model_dump(mode="json", by_alias=True)
