from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, Numeric, DateTime, Text, ForeignKey, CheckConstraint, Uuid, func
from lifekit.db import Base

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed")
ACTIVE_STATUSES = ("pending", "confirmed")
TERMINAL_STATUSES = ("cancelled", "completed")

class Service(Base):
    """Provider listing. Owned by the listings API; this backend only writes the rating fields."""
    __tablename__ = "services"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    provider_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="USD")
    pricing_type: Mapped[str] = mapped_column(String(16), nullable=False, default="fixed")  # hourly|fixed
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending|active|archived
    average_rating: Mapped[Decimal] = mapped_column(Numeric(2, 1), nullable=False, default=Decimal("0.0"))
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Booking(Base):
    __tablename__ = "bookings"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    provider_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    service_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("services.id", ondelete="RESTRICT"), index=True, nullable=False)

    scheduled_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)  # hourly services only
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # 0 => skill swap

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending|confirmed|cancelled|completed
    client_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    provider_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    location_details: Mapped[str | None] = mapped_column(Text(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # server-side timestamps are fetched back on flush, never lazy-loaded
    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="total_price_non_negative"),
        CheckConstraint("status IN ('pending','confirmed','cancelled','completed')", name="status_valid"),
        CheckConstraint("duration_hours IS NULL OR duration_hours > 0", name="duration_positive"),
    )
