from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from uuid import UUID
import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.config import settings
from lifekit.errors import DependencyFailure, InsufficientFunds, InvalidAmount, NotFoundOrUnauthorized
from lifekit.models.ledger import Transaction
from lifekit.models.wallet import Wallet
from lifekit.services import ledger, payments

log = structlog.get_logger(__name__)

MONEY = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize to 2 places; money never goes through binary floats."""
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(f"invalid amount {value!r}")
    if not d.is_finite():
        raise InvalidAmount(f"invalid amount {value!r}")
    return d.quantize(MONEY, rounding=ROUND_HALF_UP)


def _positive(amount) -> Decimal:
    amt = to_money(amount)
    if amt <= 0:
        raise InvalidAmount("amount must be > 0")
    return amt


async def find_wallet(session: AsyncSession, owner_id: UUID) -> Wallet | None:
    return await session.scalar(select(Wallet).where(Wallet.owner_id == owner_id))


async def get_or_create_wallet(session: AsyncSession, owner_id: UUID, email: str | None = None) -> Wallet:
    wallet = await find_wallet(session, owner_id)
    if wallet:
        return wallet

    try:
        async with session.begin_nested():
            wallet = Wallet(
                owner_id=owner_id,
                balance=Decimal("0.00"),
                currency=settings.default_currency,
                external_customer_ref=None,
            )
            session.add(wallet)
            await session.flush()
    except IntegrityError:
        # Lost the race against a concurrent creator; uq_wallets_owner_id guarantees one row
        log.info("wallet_create_race", owner_id=str(owner_id))
        wallet = await find_wallet(session, owner_id)
        if wallet is None:
            raise DependencyFailure("Failed to load wallet")
        return wallet

    # Only the creator whose insert won provisions the processor customer
    customer_ref = payments.create_customer(owner_id, email)
    if customer_ref:
        wallet.external_customer_ref = customer_ref
        await session.flush()

    log.info("wallet_created", owner_id=str(owner_id), wallet_id=str(wallet.id))
    return wallet


async def get_balance(session: AsyncSession, owner_id: UUID) -> Decimal:
    bal = await session.scalar(select(Wallet.balance).where(Wallet.owner_id == owner_id))
    return to_money(bal or 0)


async def _record(session: AsyncSession, wallet_id: UUID, kind: str, amount: Decimal, **kw) -> Transaction:
    try:
        return await ledger.append_entry(session, wallet_id=wallet_id, kind=kind, amount=amount, **kw)
    except SQLAlchemyError as e:
        # A balance change without its log row must never commit
        log.error("ledger_append_failed", wallet_id=str(wallet_id), kind=kind, amount=str(amount), error=str(e))
        raise DependencyFailure("Failed to record transaction") from e


async def debit(
    session: AsyncSession,
    wallet_id: UUID,
    amount,
    *,
    kind: str = "payment",
    description: str | None = None,
    reference_id: UUID | None = None,
) -> tuple[Decimal, Transaction]:
    """
    Compare-and-swap debit: subtract only if balance >= amount.
    Zero rows affected means the wallet could not cover it.
    """
    amt = _positive(amount)
    new_balance = await session.scalar(
        update(Wallet)
        .where(Wallet.id == wallet_id, Wallet.balance >= amt)
        .values(balance=Wallet.balance - amt)
        .returning(Wallet.balance)
        .execution_options(synchronize_session=False)
    )
    if new_balance is None:
        if await session.scalar(select(Wallet.id).where(Wallet.id == wallet_id)) is None:
            raise NotFoundOrUnauthorized("Wallet")
        log.info("wallet_debit_rejected", wallet_id=str(wallet_id), amount=str(amt), kind=kind)
        raise InsufficientFunds()

    tx = await _record(session, wallet_id, kind, amt, description=description, reference_id=reference_id)
    log.info("wallet_debited", wallet_id=str(wallet_id), amount=str(amt), kind=kind, balance=str(new_balance))
    return to_money(new_balance), tx


async def _add_to_balance(session: AsyncSession, wallet_id: UUID, amt: Decimal) -> Decimal:
    new_balance = await session.scalar(
        update(Wallet)
        .where(Wallet.id == wallet_id)
        .values(balance=Wallet.balance + amt)
        .returning(Wallet.balance)
        .execution_options(synchronize_session=False)
    )
    if new_balance is None:
        raise NotFoundOrUnauthorized("Wallet")
    return to_money(new_balance)


async def credit(
    session: AsyncSession,
    wallet_id: UUID,
    amount,
    *,
    kind: str,
    description: str | None = None,
    reference_id: UUID | None = None,
) -> tuple[Decimal, Transaction]:
    amt = _positive(amount)
    new_balance = await _add_to_balance(session, wallet_id, amt)
    tx = await _record(session, wallet_id, kind, amt, description=description, reference_id=reference_id)
    log.info("wallet_credited", wallet_id=str(wallet_id), amount=str(amt), kind=kind, balance=str(new_balance))
    return new_balance, tx


async def credit_external_once(
    session: AsyncSession,
    wallet_id: UUID,
    amount,
    *,
    external_ref: str,
    kind: str = "deposit",
    description: str | None = None,
) -> tuple[Decimal, Transaction] | None:
    """
    Credit for an external payment event, at most once per `external_ref`.
    The log row goes first so the unique constraint rejects a replay before
    the balance moves. Returns None for a replay.
    """
    amt = _positive(amount)
    if await ledger.find_by_external_ref(session, external_ref):
        return None
    try:
        async with session.begin_nested():
            tx = await ledger.append_entry(
                session, wallet_id=wallet_id, kind=kind, amount=amt,
                description=description, external_ref=external_ref,
            )
            new_balance = await _add_to_balance(session, wallet_id, amt)
    except IntegrityError:
        log.info("external_payment_replay", wallet_id=str(wallet_id), external_ref=external_ref)
        return None
    log.info("wallet_credited", wallet_id=str(wallet_id), amount=str(amt), kind=kind,
             external_ref=external_ref, balance=str(new_balance))
    return new_balance, tx
