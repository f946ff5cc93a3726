from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.db import get_session
from lifekit.auth_deps import get_current_user
from lifekit.security import AuthContext
from lifekit.schemas.notification import NotificationEnvelope, NotificationList
from lifekit.services.notifications import list_for_user, mark_read

router = APIRouter(prefix="/users/notifications", tags=["notifications"])

@router.get("", response_model=NotificationList)
async def my_notifications(
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    return {"notifications": await list_for_user(session, user.user_id, limit=limit)}

@router.put("/{notification_id}/read", response_model=NotificationEnvelope)
async def read_notification(
    notification_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    return {"notification": await mark_read(session, user.user_id, notification_id)}
