from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict
from uuid import UUID
from datetime import datetime

class ReviewCreate(BaseModel):
    booking_id: UUID
    service_id: UUID
    provider_id: UUID | None = None
    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=2000)

class ReviewPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    service_id: UUID
    provider_id: UUID
    reviewer_id: UUID
    rating: int
    comment: str | None = None
    created_at: datetime

class ReviewEnvelope(BaseModel):
    review: ReviewPublic

class ReviewList(BaseModel):
    reviews: list[ReviewPublic]
