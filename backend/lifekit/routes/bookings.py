from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.db import get_session
from lifekit.auth_deps import get_current_user
from lifekit.security import AuthContext
from lifekit.schemas.booking import (
    BookingCreate, BookingDecision, BookingEnvelope, BookingPublic, BookingWithService,
    ClientBookings, CompletionResponse, ProviderRequests, ProviderSchedule, SlotPublic,
)
from lifekit.services import bookings as booking_service
from lifekit.services.slots import get_blocked_slots

router = APIRouter(prefix="/bookings", tags=["bookings"])

def _with_title(rows) -> list[BookingWithService]:
    return [
        BookingWithService(**BookingPublic.model_validate(b).model_dump(), service_title=title)
        for (b, title) in rows
    ]

@router.post("", response_model=BookingEnvelope, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    booking = await booking_service.create_booking(
        session, user,
        service_id=payload.service_id,
        scheduled_time=payload.scheduled_time,
        total_price=payload.total_price,
        location_details=payload.location_details,
        duration_hours=payload.duration_hours,
    )
    return {"booking": booking}

@router.put("/{booking_id}/status", response_model=BookingEnvelope)
async def decide_booking(
    payload: BookingDecision,
    booking_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    booking = await booking_service.decide(session, user, booking_id, payload.status)
    return {"booking": booking}

@router.put("/{booking_id}/complete", response_model=CompletionResponse)
async def complete_booking(
    booking_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    result = await booking_service.complete(session, user, booking_id)
    return {"status": result.status, "booking": result.booking}

@router.get("/client", response_model=ClientBookings)
async def my_bookings(session: AsyncSession = Depends(get_session), user: AuthContext = Depends(get_current_user)):
    rows = await booking_service.list_for_client(session, user)
    return {"bookings": _with_title(rows)}

@router.get("/provider", response_model=ProviderRequests)
async def my_requests(session: AsyncSession = Depends(get_session), user: AuthContext = Depends(get_current_user)):
    rows = await booking_service.list_for_provider(session, user)
    return {"requests": _with_title(rows)}

@router.get("/provider-schedule/{provider_id}", response_model=ProviderSchedule)
async def provider_schedule(
    provider_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    slots = await get_blocked_slots(session, provider_id)
    return {"provider_id": provider_id, "slots": [SlotPublic.model_validate(s) for s in slots]}
