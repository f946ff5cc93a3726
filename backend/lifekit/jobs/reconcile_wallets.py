"""Compare every wallet's stored balance with the sum of its transaction log.

    python -m lifekit.jobs.reconcile_wallets

Read-only: mismatches are logged for an operator, never auto-corrected.
Exit status is 1 when any wallet drifted.
"""
from __future__ import annotations
import asyncio
import sys
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID
import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.db import SessionLocal
from lifekit.logging_setup import configure_logging
from lifekit.models.ledger import Transaction
from lifekit.models.wallet import Wallet

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Drift:
    wallet_id: UUID
    owner_id: UUID
    stored: Decimal
    logged: Decimal

    @property
    def delta(self) -> Decimal:
        return self.stored - self.logged


async def find_drift(session: AsyncSession) -> list[Drift]:
    logged = (
        select(Transaction.wallet_id, func.sum(Transaction.amount).label("total"))
        .where(Transaction.status == "success", Transaction.wallet_id.is_not(None))
        .group_by(Transaction.wallet_id)
        .subquery()
    )
    rows = (await session.execute(
        select(Wallet.id, Wallet.owner_id, Wallet.balance, func.coalesce(logged.c.total, 0))
        .outerjoin(logged, logged.c.wallet_id == Wallet.id)
    )).all()

    drift = []
    for wallet_id, owner_id, stored, total in rows:
        stored_d = Decimal(str(stored)).quantize(Decimal("0.01"))
        logged_d = Decimal(str(total)).quantize(Decimal("0.01"))
        if stored_d != logged_d:
            drift.append(Drift(wallet_id, owner_id, stored_d, logged_d))
    return drift


async def _run() -> int:
    async with SessionLocal() as session:
        drift = await find_drift(session)
    for d in drift:
        log.error("wallet_balance_drift", wallet_id=str(d.wallet_id), owner_id=str(d.owner_id),
                  stored=str(d.stored), logged=str(d.logged), delta=str(d.delta))
    log.info("wallet_reconcile_done", drifted=len(drift))
    return 1 if drift else 0


def main() -> None:
    configure_logging()
    sys.exit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
