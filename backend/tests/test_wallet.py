from __future__ import annotations
import uuid
from decimal import Decimal
import pytest
from sqlalchemy import select, func

from lifekit.errors import InsufficientFunds, InvalidAmount, NotFoundOrUnauthorized
from lifekit.models.ledger import Transaction
from lifekit.models.wallet import Wallet
from lifekit.services import ledger, payments
from lifekit.services import wallet as wallet_service
from lifekit.services.payments import from_cents, to_cents
from conftest import fund


def test_money_is_quantized_to_cents():
    assert wallet_service.to_money("10") == Decimal("10.00")
    assert wallet_service.to_money(Decimal("0.005")) == Decimal("0.01")
    assert to_cents(Decimal("12.34")) == 1234
    assert from_cents(1234) == Decimal("12.34")
    with pytest.raises(InvalidAmount):
        wallet_service.to_money("ten")
    with pytest.raises(InvalidAmount):
        wallet_service.to_money("NaN")


@pytest.mark.asyncio
async def test_wallet_is_created_once(session):
    owner = uuid.uuid4()
    a = await wallet_service.get_or_create_wallet(session, owner)
    b = await wallet_service.get_or_create_wallet(session, owner)
    assert a.id == b.id
    assert a.balance == Decimal("0.00")
    assert a.external_customer_ref is None  # processor not configured in tests
    assert await session.scalar(select(func.count(Wallet.id)).where(Wallet.owner_id == owner)) == 1


@pytest.mark.asyncio
async def test_lost_creation_race_returns_existing_row(session, monkeypatch):
    owner = uuid.uuid4()
    existing = await wallet_service.get_or_create_wallet(session, owner)
    await session.commit()

    # the other creator committed between our lookup and our insert
    calls = iter([None])

    async def _find(session, owner_id):
        nxt = next(calls, "db")
        if nxt is None:
            return None
        return await session.scalar(select(Wallet).where(Wallet.owner_id == owner_id))

    monkeypatch.setattr(wallet_service, "find_wallet", _find)
    w = await wallet_service.get_or_create_wallet(session, owner)
    assert w.id == existing.id
    assert await session.scalar(select(func.count(Wallet.id)).where(Wallet.owner_id == owner)) == 1


@pytest.mark.asyncio
async def test_debit_and_credit_keep_log_in_step(session):
    owner = uuid.uuid4()
    w = await fund(session, owner, "100.00")

    new_balance, tx = await wallet_service.debit(session, w.id, "30.00", kind="withdrawal", description="bank")
    assert new_balance == Decimal("70.00")
    assert tx.amount == Decimal("-30.00")
    await session.commit()

    with pytest.raises(InsufficientFunds):
        await wallet_service.debit(session, w.id, "70.01", kind="withdrawal")
    with pytest.raises(InvalidAmount):
        await wallet_service.debit(session, w.id, "0", kind="withdrawal")
    with pytest.raises(InvalidAmount):
        await wallet_service.credit(session, w.id, "-5", kind="deposit")

    assert await wallet_service.get_balance(session, owner) == Decimal("70.00")
    assert await ledger.ledger_sum(session, w.id) == Decimal("70.00")
    rows = await ledger.list_transactions(session, w.id, limit=10)
    assert sorted(r.kind for r in rows) == ["deposit", "withdrawal"]


@pytest.mark.asyncio
async def test_external_payment_is_credited_once(session):
    owner = uuid.uuid4()
    w = await wallet_service.get_or_create_wallet(session, owner)

    first = await wallet_service.credit_external_once(session, w.id, "25.00", external_ref="pi_123")
    await session.commit()
    again = await wallet_service.credit_external_once(session, w.id, "25.00", external_ref="pi_123")
    await session.commit()

    assert first is not None and first[0] == Decimal("25.00")
    assert again is None
    assert await wallet_service.get_balance(session, owner) == Decimal("25.00")
    assert await session.scalar(
        select(func.count(Transaction.id)).where(Transaction.external_ref == "pi_123")
    ) == 1


@pytest.mark.asyncio
async def test_replay_caught_by_unique_constraint(session, monkeypatch):
    owner = uuid.uuid4()
    w = await wallet_service.get_or_create_wallet(session, owner)
    await wallet_service.credit_external_once(session, w.id, "10.00", external_ref="pi_race")
    await session.commit()

    # a concurrent confirmation slipped past the pre-check
    async def _miss(session, external_ref):
        return None

    monkeypatch.setattr(ledger, "find_by_external_ref", _miss)
    assert await wallet_service.credit_external_once(session, w.id, "10.00", external_ref="pi_race") is None
    await session.commit()
    assert await wallet_service.get_balance(session, owner) == Decimal("10.00")


@pytest.mark.asyncio
async def test_customer_is_provisioned_only_by_the_winning_creator(session, monkeypatch):
    provisioned = []

    def _create_customer(owner_id, email=None):
        provisioned.append(owner_id)
        return f"cus_{len(provisioned)}"

    monkeypatch.setattr(payments, "create_customer", _create_customer)
    owner = uuid.uuid4()
    existing = await wallet_service.get_or_create_wallet(session, owner, "a@ex.com")
    await session.commit()
    assert existing.external_customer_ref == "cus_1"
    assert provisioned == [owner]

    # the lookup misses once, as if the other creator committed after it
    calls = iter([None])

    async def _find(session, owner_id):
        if next(calls, "db") is None:
            return None
        return await session.scalar(select(Wallet).where(Wallet.owner_id == owner_id))

    monkeypatch.setattr(wallet_service, "find_wallet", _find)
    w = await wallet_service.get_or_create_wallet(session, owner, "a@ex.com")
    assert w.id == existing.id
    assert provisioned == [owner]
    assert await session.scalar(select(Wallet.external_customer_ref).where(Wallet.owner_id == owner)) == "cus_1"


@pytest.mark.asyncio
async def test_debit_of_unknown_wallet_is_not_found(session):
    with pytest.raises(NotFoundOrUnauthorized):
        await wallet_service.debit(session, uuid.uuid4(), "1.00", kind="withdrawal")
    with pytest.raises(NotFoundOrUnauthorized):
        await wallet_service.credit(session, uuid.uuid4(), "1.00", kind="deposit")
