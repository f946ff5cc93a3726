from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.models.booking import ACTIVE_STATUSES, Booking, Service


@dataclass(frozen=True)
class BlockedSlot:
    day: date
    start: time | None
    end: time | None
    blocked: bool  # True => the whole day is taken


def _utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; treat them as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def derive_blocked_slots(rows: Iterable[tuple[datetime, str, int | None]]) -> list[BlockedSlot]:
    """
    rows: (scheduled_time, pricing_type, duration_hours) of pending/confirmed bookings.
    Hourly bookings block [start, start + duration) on their day; anything else blocks the day.
    Days are UTC calendar days.
    """
    slots: list[BlockedSlot] = []
    for scheduled, pricing_type, duration in rows:
        start_dt = _utc(scheduled)
        day = start_dt.date()
        if pricing_type == "hourly":
            end_dt = start_dt + timedelta(hours=duration or 1)
            # clamp to the same calendar day
            end = end_dt.time() if end_dt.date() == day else time.max
            slots.append(BlockedSlot(day=day, start=start_dt.time(), end=end, blocked=False))
        else:
            slots.append(BlockedSlot(day=day, start=None, end=None, blocked=True))

    slots.sort(key=lambda s: (s.day, 0 if s.blocked else 1, s.start or time.min))
    return slots


async def get_blocked_slots(session: AsyncSession, provider_id: UUID) -> list[BlockedSlot]:
    rows = (await session.execute(
        select(Booking.scheduled_time, Service.pricing_type, Booking.duration_hours)
        .join(Service, Service.id == Booking.service_id)
        .where(Booking.provider_id == provider_id, Booking.status.in_(ACTIVE_STATUSES))
    )).all()
    return derive_blocked_slots(rows)
