from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Numeric, DateTime, ForeignKey, CheckConstraint, Uuid, func
from lifekit.db import Base

KINDS = ("deposit", "withdrawal", "payment", "refund", "earning", "admin_withdrawal")
STATUSES = ("success", "pending", "failed")

class Transaction(Base):
    """
    Append-only audit log of wallet movements.
    Sign convention:
      - DEPOSIT / REFUND / EARNING             => positive (credit wallet)
      - WITHDRAWAL / PAYMENT / ADMIN_WITHDRAWAL => negative (debit wallet)

    Σ(amount) per wallet == wallet.balance (wallets start at 0).
    Idempotency: external_ref is unique (e.g. Stripe payment_intent id).
    """
    __tablename__ = "transactions"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # NULL for system-level entries (platform withdrawals)
    wallet_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("wallets.id", ondelete="RESTRICT"), index=True, nullable=True
    )

    kind: Mapped[str] = mapped_column(String(24), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # sign as per convention
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="success")
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Booking that caused the movement, if any
    reference_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True, nullable=True)
    external_ref: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "kind IN ('deposit','withdrawal','payment','refund','earning','admin_withdrawal')",
            name="kind_valid",
        ),
        CheckConstraint(
            "(kind IN ('deposit','refund','earning') AND amount > 0) OR "
            "(kind IN ('withdrawal','payment','admin_withdrawal') AND amount < 0)",
            name="amount_sign",
        ),
    )
