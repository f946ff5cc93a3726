from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict
from uuid import UUID
from datetime import datetime

class MessageCreate(BaseModel):
    booking_id: UUID
    content: str = Field(max_length=4000)

class MessagePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    sender_id: UUID
    content: str
    created_at: datetime

class MessageList(BaseModel):
    messages: list[MessagePublic]

class MessageEnvelope(BaseModel):
    message: MessagePublic
