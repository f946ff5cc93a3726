from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, Text, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, Uuid, func
from lifekit.db import Base

class Review(Base):
    __tablename__ = "reviews"
    __mapper_args__ = {"eager_defaults": True}
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    service_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("services.id", ondelete="CASCADE"), index=True, nullable=False)
    provider_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    reviewer_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("booking_id", name="uq_review_once_per_booking"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="rating_range"),
    )
