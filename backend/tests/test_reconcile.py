from __future__ import annotations
import uuid
from decimal import Decimal
import pytest
from sqlalchemy import update

from lifekit.jobs.reconcile_wallets import find_drift
from lifekit.models.wallet import Wallet
from conftest import fund


@pytest.mark.asyncio
async def test_drift_is_reported(session):
    good, bad = uuid.uuid4(), uuid.uuid4()
    await fund(session, good, "10.00")
    w = await fund(session, bad, "20.00")
    assert await find_drift(session) == []

    # a balance written behind the ledger's back
    await session.execute(update(Wallet).where(Wallet.id == w.id).values(balance=Decimal("25.00")))
    await session.commit()

    (d,) = await find_drift(session)
    assert d.owner_id == bad
    assert d.stored == Decimal("25.00")
    assert d.logged == Decimal("20.00")
    assert d.delta == Decimal("5.00")
