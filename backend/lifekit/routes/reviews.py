from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.db import get_session
from lifekit.auth_deps import get_current_user
from lifekit.security import AuthContext
from lifekit.schemas.review import ReviewCreate, ReviewEnvelope, ReviewList
from lifekit.services.reviews import submit_review, list_reviews

router = APIRouter(prefix="/reviews", tags=["reviews"])

@router.post("", response_model=ReviewEnvelope, status_code=status.HTTP_201_CREATED)
async def create_review(
    payload: ReviewCreate,
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    review = await submit_review(
        session, user,
        booking_id=payload.booking_id,
        service_id=payload.service_id,
        rating=payload.rating,
        comment=payload.comment,
        provider_id=payload.provider_id,
    )
    return {"review": review}

@router.get("/{service_id}", response_model=ReviewList)
async def service_reviews(
    service_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    return {"reviews": await list_reviews(session, service_id)}
