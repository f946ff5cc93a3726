from __future__ import annotations
from pydantic import BaseModel, ConfigDict
from uuid import UUID
from datetime import datetime

class NotificationPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    message: str
    kind: str
    reference_id: UUID | None = None
    is_read: bool
    created_at: datetime

class NotificationList(BaseModel):
    notifications: list[NotificationPublic]

class NotificationEnvelope(BaseModel):
    notification: NotificationPublic
