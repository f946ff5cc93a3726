from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict, field_serializer
from typing import Literal
from uuid import UUID
from datetime import date, datetime, time
from decimal import Decimal

BookingStatus = Literal["pending", "confirmed", "cancelled", "completed"]
Decision = Literal["confirmed", "cancelled"]

class BookingCreate(BaseModel):
    service_id: UUID
    scheduled_time: datetime
    total_price: Decimal = Field(ge=0, decimal_places=2, description="0 for a skill swap")
    location_details: str | None = Field(default=None, max_length=2000)
    duration_hours: int | None = Field(default=None, ge=1, le=24, description="hourly services only")

class BookingDecision(BaseModel):
    status: Decision

class BookingPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    provider_id: UUID
    service_id: UUID
    scheduled_time: datetime
    duration_hours: int | None = None
    total_price: Decimal
    status: BookingStatus
    client_confirmed: bool
    provider_confirmed: bool
    location_details: str | None = None
    created_at: datetime
    updated_at: datetime

class BookingWithService(BookingPublic):
    service_title: str

class BookingEnvelope(BaseModel):
    booking: BookingPublic

class CompletionResponse(BaseModel):
    status: Literal["waiting_other", "completed"]
    booking: BookingPublic

class ClientBookings(BaseModel):
    bookings: list[BookingWithService]

class ProviderRequests(BaseModel):
    requests: list[BookingWithService]

class SlotPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    @field_serializer("start", "end")
    def serialize_time(self, value: time | None) -> str | None:
        return value.strftime('%H:%M') if value is not None else None

    day: date
    start: time | None = None
    end: time | None = None
    blocked: bool

class ProviderSchedule(BaseModel):
    provider_id: UUID
    slots: list[SlotPublic]
