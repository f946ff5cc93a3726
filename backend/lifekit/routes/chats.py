from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.db import get_session
from lifekit.auth_deps import get_current_user
from lifekit.errors import ValidationError
from lifekit.models.message import Message
from lifekit.security import AuthContext
from lifekit.schemas.message import MessageCreate, MessageEnvelope, MessageList
from lifekit.services.bookings import get_for_party

router = APIRouter(prefix="/chats", tags=["chats"])

@router.get("/{booking_id}/messages", response_model=MessageList)
async def booking_messages(
    booking_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    await get_for_party(session, user, booking_id)
    rows = (await session.execute(
        select(Message)
        .where(Message.booking_id == booking_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )).scalars().all()
    return {"messages": rows}

@router.post("/messages", response_model=MessageEnvelope, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    content = payload.content.strip()
    if not content:
        raise ValidationError("Message content is required")
    booking = await get_for_party(session, user, payload.booking_id)
    msg = Message(booking_id=booking.id, sender_id=user.user_id, content=content)
    session.add(msg)
    await session.commit()
    return {"message": msg}
