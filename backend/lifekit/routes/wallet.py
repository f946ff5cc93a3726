from __future__ import annotations
from decimal import Decimal
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from lifekit.config import settings
from lifekit.db import get_session
from lifekit.auth_deps import get_current_user
from lifekit.errors import InvalidAmount, NotFoundOrUnauthorized, ValidationError
from lifekit.security import AuthContext
from lifekit.schemas.wallet import (
    ConfirmDepositRequest, ConfirmDepositResponse, DepositRequest, DepositResponse,
    WalletSnapshot, WithdrawRequest, WithdrawResponse,
)
from lifekit.services import ledger, payments
from lifekit.services import wallet as wallet_service

router = APIRouter(prefix="/wallet", tags=["wallet"])
log = structlog.get_logger(__name__)

@router.get("", response_model=WalletSnapshot)
async def get_wallet(session: AsyncSession = Depends(get_session), user: AuthContext = Depends(get_current_user)):
    wallet = await wallet_service.get_or_create_wallet(session, user.user_id, user.email)
    await session.commit()
    balance = await wallet_service.get_balance(session, user.user_id)
    rows = await ledger.list_transactions(session, wallet.id, limit=settings.wallet_history_limit)
    return {"balance": balance, "currency": wallet.currency, "transactions": rows}

@router.post("/deposit", response_model=DepositResponse)
async def create_deposit(
    payload: DepositRequest,
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    amount = wallet_service.to_money(payload.amount)
    if amount > Decimal(settings.max_deposit_amount):
        raise InvalidAmount(f"Deposits are limited to {settings.max_deposit_amount} per request")

    wallet = await wallet_service.get_or_create_wallet(session, user.user_id, user.email)
    await session.commit()
    intent = payments.create_deposit_intent(
        customer_ref=wallet.external_customer_ref,
        amount=amount,
        currency=wallet.currency,
        metadata={"wallet_id": str(wallet.id), "user_id": str(user.user_id)},
    )
    log.info("deposit_intent_created", wallet_id=str(wallet.id), amount=str(amount), payment_intent_id=intent["id"])
    return DepositResponse(client_secret=intent["client_secret"], payment_intent_id=intent["id"])

@router.post("/confirm-deposit", response_model=ConfirmDepositResponse)
async def confirm_deposit(
    payload: ConfirmDepositRequest,
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    """Client-driven confirmation; the webhook applies the same credit, whichever arrives first wins."""
    wallet = await wallet_service.get_or_create_wallet(session, user.user_id, user.email)
    outcome = payments.retrieve_intent(payload.payment_intent_id)
    if outcome.metadata.get("user_id") != str(user.user_id):
        raise NotFoundOrUnauthorized("Payment")
    if not outcome.succeeded:
        raise ValidationError("Payment not completed")

    credited = await wallet_service.credit_external_once(
        session, wallet.id, outcome.amount,
        external_ref=outcome.reference,
        kind="deposit",
        description="Deposit via card",
    )
    await session.commit()
    balance = await wallet_service.get_balance(session, user.user_id)
    return {"status": "credited" if credited else "already_processed", "balance": balance}

@router.post("/withdraw", response_model=WithdrawResponse)
async def withdraw(
    payload: WithdrawRequest,
    session: AsyncSession = Depends(get_session),
    user: AuthContext = Depends(get_current_user),
):
    wallet = await wallet_service.get_or_create_wallet(session, user.user_id, user.email)
    new_balance, tx = await wallet_service.debit(
        session, wallet.id, payload.amount,
        kind="withdrawal",
        description="Withdrawal to bank",
    )
    await session.commit()
    return {"new_balance": new_balance, "transaction": tx}
