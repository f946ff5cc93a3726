from __future__ import annotations
from decimal import Decimal
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.models.ledger import Transaction, KINDS

# Kinds that take money out of a wallet; stored with a negative amount
DEBIT_KINDS = frozenset({"withdrawal", "payment", "admin_withdrawal"})
CREDIT_KINDS = frozenset({"deposit", "refund", "earning"})


def signed_amount(kind: str, amount: Decimal) -> Decimal:
    if kind not in KINDS:
        raise ValueError(f"unknown transaction kind {kind!r}")
    return -amount if kind in DEBIT_KINDS else amount


async def append_entry(
    session: AsyncSession,
    *,
    wallet_id: UUID | None,
    kind: str,
    amount: Decimal,
    description: str | None = None,
    reference_id: UUID | None = None,
    external_ref: str | None = None,
    status: str = "success",
) -> Transaction:
    """
    Insert one log row and flush so a failure surfaces here, inside the
    caller's unit of work, rather than at commit time.
    `amount` is the unsigned magnitude; the sign is derived from `kind`.
    """
    tx = Transaction(
        wallet_id=wallet_id,
        kind=kind,
        amount=signed_amount(kind, amount),
        status=status,
        description=description,
        reference_id=reference_id,
        external_ref=external_ref,
    )
    session.add(tx)
    await session.flush()
    return tx


async def list_transactions(session: AsyncSession, wallet_id: UUID, limit: int = 10) -> list[Transaction]:
    return list((await session.execute(
        select(Transaction)
        .where(Transaction.wallet_id == wallet_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
    )).scalars().all())


async def ledger_sum(session: AsyncSession, wallet_id: UUID) -> Decimal:
    """Balance reconstructed from the log alone."""
    total = await session.scalar(
        select(func.coalesce(func.sum(Transaction.amount), 0))
        .where(Transaction.wallet_id == wallet_id, Transaction.status == "success")
    )
    return Decimal(str(total or 0)).quantize(Decimal("0.01"))


async def entries_for_booking(session: AsyncSession, booking_id: UUID) -> list[Transaction]:
    return list((await session.execute(
        select(Transaction).where(Transaction.reference_id == booking_id)
    )).scalars().all())


async def find_by_external_ref(session: AsyncSession, external_ref: str) -> Transaction | None:
    return await session.scalar(select(Transaction).where(Transaction.external_ref == external_ref))
