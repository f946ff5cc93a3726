from __future__ import annotations
from decimal import Decimal
from uuid import UUID
import structlog
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.errors import ConflictingState, NotFoundOrUnauthorized, ValidationError
from lifekit.models.booking import Booking, Service
from lifekit.models.review import Review
from lifekit.security import AuthContext

log = structlog.get_logger(__name__)


async def recompute_service_rating(session: AsyncSession, service_id: UUID) -> tuple[Decimal, int]:
    """Full re-scan of the service's reviews, written back in a single UPDATE."""
    avg_q = (
        select(func.round(func.avg(Review.rating), 1))
        .where(Review.service_id == service_id)
        .scalar_subquery()
    )
    count_q = (
        select(func.count(Review.id))
        .where(Review.service_id == service_id)
        .scalar_subquery()
    )
    row = (await session.execute(
        update(Service)
        .where(Service.id == service_id)
        .values(average_rating=func.coalesce(avg_q, 0), total_reviews=count_q)
        .returning(Service.average_rating, Service.total_reviews)
        .execution_options(synchronize_session=False)
    )).one_or_none()
    if row is None:
        raise NotFoundOrUnauthorized("Service")
    avg, total = row
    return Decimal(str(avg)).quantize(Decimal("0.1")), int(total)


async def submit_review(
    session: AsyncSession,
    caller: AuthContext,
    *,
    booking_id: UUID,
    service_id: UUID,
    rating: int,
    comment: str | None = None,
    provider_id: UUID | None = None,
) -> Review:
    if not 1 <= rating <= 5:
        raise ValidationError("rating must be between 1 and 5")

    booking = await session.get(Booking, booking_id)
    if booking is None or booking.client_id != caller.user_id or booking.service_id != service_id:
        raise NotFoundOrUnauthorized("Booking")
    if provider_id is not None and provider_id != booking.provider_id:
        raise ValidationError("provider_id does not match the booking")
    if booking.status != "completed":
        raise ConflictingState("Only completed bookings can be reviewed.")

    review = Review(
        booking_id=booking.id,
        service_id=service_id,
        provider_id=booking.provider_id,
        reviewer_id=caller.user_id,
        rating=rating,
        comment=comment,
    )
    try:
        async with session.begin_nested():
            session.add(review)
            await session.flush()
    except IntegrityError:
        raise ConflictingState("This booking has already been reviewed.")

    avg, total = await recompute_service_rating(session, service_id)
    await session.commit()
    log.info("review_submitted", review_id=str(review.id), service_id=str(service_id),
             rating=rating, average_rating=str(avg), total_reviews=total)
    return review


async def list_reviews(session: AsyncSession, service_id: UUID, limit: int = 100) -> list[Review]:
    return list((await session.execute(
        select(Review)
        .where(Review.service_id == service_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .limit(limit)
    )).scalars().all())
