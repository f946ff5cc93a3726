"""Escrow booking state machine.

    pending ──decide──> confirmed ──complete x2──> completed
       └─────decide───> cancelled (refund)

Every transition is a conditional UPDATE ... RETURNING guarded by the source
state, so a zero-row result is the failed precondition and concurrent callers
cannot both pass it. Money moves in the same database transaction as the
transition; notifications go out only after that transaction commits.
"""
from __future__ import annotations
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID
import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.errors import (
    ConflictingState, DependencyFailure, ForbiddenAction, NotFoundOrUnauthorized, ValidationError,
)
from lifekit.models.booking import Booking, Service
from lifekit.security import AuthContext
from lifekit.services import wallet as wallet_service
from lifekit.services.notifications import Notice, emit

log = structlog.get_logger(__name__)

Decision = Literal["confirmed", "cancelled"]

# ORM UPDATE ... RETURNING that refreshes any copy already in the identity map
_RETURNING_OPTS = {"synchronize_session": False, "populate_existing": True}


@dataclass(frozen=True)
class CompletionResult:
    status: Literal["waiting_other", "completed"]
    booking: Booking


async def _active_service(session: AsyncSession, service_id: UUID) -> Service:
    svc = await session.scalar(select(Service).where(Service.id == service_id, Service.status == "active"))
    if svc is None or svc.provider_id is None:
        raise NotFoundOrUnauthorized("Service")
    return svc


async def _insert_booking(session: AsyncSession, **values) -> Booking:
    booking = Booking(**values)
    session.add(booking)
    await session.flush()
    return booking


async def create_booking(
    session: AsyncSession,
    caller: AuthContext,
    *,
    service_id: UUID,
    scheduled_time: datetime,
    total_price,
    location_details: str | None = None,
    duration_hours: int | None = None,
) -> Booking:
    price = wallet_service.to_money(total_price)
    if price < 0:
        raise ValidationError("total_price must be >= 0")

    service = await _active_service(session, service_id)
    if service.provider_id == caller.user_id:
        raise ValidationError("You cannot book your own service.")

    hours = None
    if service.pricing_type == "hourly":
        hours = duration_hours or 1
        if hours <= 0:
            raise ValidationError("duration_hours must be > 0")

    client_wallet = await wallet_service.get_or_create_wallet(session, caller.user_id, caller.email)
    booking_id = uuid.uuid4()

    # Hold: conditional debit, InsufficientFunds when the balance cannot cover the price
    if price > 0:
        await wallet_service.debit(
            session, client_wallet.id, price,
            kind="payment",
            description=f"Hold for booking #{booking_id}",
            reference_id=booking_id,
        )

    try:
        async with session.begin_nested():
            booking = await _insert_booking(
                session,
                id=booking_id,
                client_id=caller.user_id,
                provider_id=service.provider_id,
                service_id=service.id,
                scheduled_time=scheduled_time,
                duration_hours=hours,
                total_price=price,
                status="pending",
                client_confirmed=False,
                provider_confirmed=False,
                location_details=location_details,
            )
    except SQLAlchemyError as e:
        log.error("booking_insert_failed", booking_id=str(booking_id), error=str(e))
        # Funds must never stay held against a booking that does not exist
        if price > 0:
            await wallet_service.credit(
                session, client_wallet.id, price,
                kind="refund",
                description=f"Refund for failed booking #{booking_id}",
                reference_id=booking_id,
            )
            await session.commit()
        raise DependencyFailure("Failed to create booking.") from e

    await session.commit()
    log.info("booking_created", booking_id=str(booking.id), client_id=str(caller.user_id),
             provider_id=str(service.provider_id), total_price=str(price))

    await emit(session, Notice(
        user_id=service.provider_id,
        title="New Booking Request",
        message=f'Someone wants to book "{service.title}" for {price} {service.currency}. Check your requests!',
        kind="booking_request",
        reference_id=booking.id,
    ))
    return booking


async def decide(session: AsyncSession, caller: AuthContext, booking_id: UUID, decision: Decision) -> Booking:
    """Provider accepts or declines a pending booking. Declining refunds the hold."""
    if decision not in ("confirmed", "cancelled"):
        raise ValidationError("Invalid status.")

    booking = await session.scalar(
        update(Booking)
        .where(
            Booking.id == booking_id,
            Booking.provider_id == caller.user_id,
            Booking.status == "pending",
        )
        .values(status=decision)
        .returning(Booking)
        .execution_options(**_RETURNING_OPTS)
    )
    if booking is None:
        # Missing, not yours, or already decided: all look the same from outside
        raise NotFoundOrUnauthorized("Booking")

    price = wallet_service.to_money(booking.total_price)
    if decision == "cancelled" and price > 0:
        client_wallet = await wallet_service.get_or_create_wallet(session, booking.client_id)
        await wallet_service.credit(
            session, client_wallet.id, price,
            kind="refund",
            description=f"Refund for Booking #{booking.id}",
            reference_id=booking.id,
        )
    await session.commit()
    log.info("booking_decided", booking_id=str(booking.id), status=decision, refunded=str(price) if decision == "cancelled" else "0")

    if decision == "cancelled":
        notice = Notice(booking.client_id, "Booking Declined",
                        "The provider declined. Your funds have been refunded.", "booking_update", booking.id)
    else:
        notice = Notice(booking.client_id, "Booking Confirmed!",
                        "Your provider has accepted the booking.", "booking_update", booking.id)
    await emit(session, notice)
    return booking


async def complete(session: AsyncSession, caller: AuthContext, booking_id: UUID) -> CompletionResult:
    """
    Record the caller's confirmation; the second confirmation settles the booking
    and releases the held funds to the provider.
    """
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundOrUnauthorized("Booking")

    if caller.user_id == booking.client_id:
        flag, role = Booking.client_confirmed, "client"
    elif caller.user_id == booking.provider_id:
        flag, role = Booking.provider_confirmed, "provider"
    else:
        raise ForbiddenAction("Unauthorized action.")

    flagged = await session.scalar(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == "confirmed")
        .values({flag: True})
        .returning(Booking)
        .execution_options(**_RETURNING_OPTS)
    )
    if flagged is None:
        status = await session.scalar(select(Booking.status).where(Booking.id == booking_id))
        raise ConflictingState(f"Booking is {status}; only confirmed bookings can be completed.")

    if not (flagged.client_confirmed and flagged.provider_confirmed):
        await session.commit()
        log.info("booking_confirmation_recorded", booking_id=str(booking_id), role=role)
        return CompletionResult("waiting_other", flagged)

    # Exactly one caller moves confirmed -> completed; only that caller pays out
    settled = await session.scalar(
        update(Booking)
        .where(
            Booking.id == booking_id,
            Booking.status == "confirmed",
            Booking.client_confirmed.is_(True),
            Booking.provider_confirmed.is_(True),
        )
        .values(status="completed")
        .returning(Booking)
        .execution_options(**_RETURNING_OPTS)
    )
    if settled is None:
        await session.commit()
        current = await session.get(Booking, booking_id, populate_existing=True)
        return CompletionResult("completed", current)

    price = wallet_service.to_money(settled.total_price)
    if price > 0:
        provider_wallet = await wallet_service.get_or_create_wallet(session, settled.provider_id)
        await wallet_service.credit(
            session, provider_wallet.id, price,
            kind="earning",
            description=f"Earning from Booking #{settled.id}",
            reference_id=settled.id,
        )
    await session.commit()
    log.info("booking_completed", booking_id=str(settled.id), released=str(price))

    await emit(
        session,
        Notice(settled.client_id, "Service Completed", "Booking closed.", "booking_completed", settled.id),
        Notice(settled.provider_id, "Payment Received",
               "Funds released to your wallet." if price > 0 else "Skill swap completed.",
               "booking_completed", settled.id),
    )
    return CompletionResult("completed", settled)


async def list_for_client(session: AsyncSession, caller: AuthContext) -> list[tuple[Booking, str]]:
    rows = (await session.execute(
        select(Booking, Service.title)
        .join(Service, Service.id == Booking.service_id)
        .where(Booking.client_id == caller.user_id)
        .order_by(Booking.created_at.desc())
    )).all()
    return [(b, title) for (b, title) in rows]


async def list_for_provider(session: AsyncSession, caller: AuthContext) -> list[tuple[Booking, str]]:
    rows = (await session.execute(
        select(Booking, Service.title)
        .join(Service, Service.id == Booking.service_id)
        .where(Booking.provider_id == caller.user_id)
        .order_by(Booking.created_at.desc())
    )).all()
    return [(b, title) for (b, title) in rows]


async def get_for_party(session: AsyncSession, caller: AuthContext, booking_id: UUID) -> Booking:
    """Booking visible to its client or provider only."""
    booking = await session.get(Booking, booking_id)
    if booking is None or caller.user_id not in (booking.client_id, booking.provider_id):
        raise NotFoundOrUnauthorized("Booking")
    return booking

