from __future__ import annotations
from dataclasses import dataclass
from uuid import UUID
import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.errors import NotFoundOrUnauthorized
from lifekit.models.notification import Notification

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Notice:
    user_id: UUID
    title: str
    message: str
    kind: str
    reference_id: UUID | None = None


async def emit(session: AsyncSession, *notices: Notice) -> bool:
    """
    Best-effort insert, called only after the state change has committed.
    A failure is logged and swallowed; it never undoes a booking or wallet write.
    """
    if not notices:
        return True
    try:
        # a failed insert only rolls back its savepoint; objects loaded earlier stay usable
        async with session.begin_nested():
            session.add_all([
                Notification(
                    user_id=n.user_id, title=n.title, message=n.message,
                    kind=n.kind, reference_id=n.reference_id, is_read=False,
                ) for n in notices
            ])
            await session.flush()
        await session.commit()
    except SQLAlchemyError as e:
        log.warning(
            "notification_failed",
            kinds=[n.kind for n in notices],
            reference_id=str(notices[0].reference_id) if notices[0].reference_id else None,
            error=str(e),
        )
        return False
    return True


async def list_for_user(session: AsyncSession, user_id: UUID, limit: int = 50) -> list[Notification]:
    return list((await session.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )).scalars().all())


async def mark_read(session: AsyncSession, user_id: UUID, notification_id: UUID) -> Notification:
    """Scoped to the owner: someone else's notification is reported as missing."""
    n = await session.scalar(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(is_read=True)
        .returning(Notification)
        .execution_options(synchronize_session=False, populate_existing=True)
    )
    if n is None:
        raise NotFoundOrUnauthorized("Notification")
    await session.commit()
    return n
