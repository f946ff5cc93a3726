from __future__ import annotations
from uuid import UUID
import stripe
import structlog
from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from lifekit.db import get_session
from lifekit.errors import ValidationError
from lifekit.services import payments
from lifekit.services import wallet as wallet_service

router = APIRouter(tags=["stripe"])
log = structlog.get_logger(__name__)

@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_session),
):
    payload = await request.body()
    try:
        event = payments.construct_event(payload, stripe_signature)
    except (stripe.SignatureVerificationError, ValueError) as e:
        log.warning("stripe_webhook_rejected", error=str(e))
        raise ValidationError("Invalid webhook")

    if event["type"] != "payment_intent.succeeded":
        return {"ignored": event["type"]}

    outcome = payments.outcome_from_intent(event["data"]["object"])
    user_id = outcome.metadata.get("user_id")
    if not (outcome.succeeded and user_id and outcome.amount > 0):
        return {"ok": True}

    try:
        owner_id = UUID(user_id)
    except ValueError:
        log.warning("stripe_webhook_bad_metadata", payment_intent_id=outcome.reference)
        return {"ok": True}

    # payment intent id is the idempotency key, shared with /wallet/confirm-deposit
    wallet = await wallet_service.get_or_create_wallet(db, owner_id)
    credited = await wallet_service.credit_external_once(
        db, wallet.id, outcome.amount,
        external_ref=outcome.reference,
        kind="deposit",
        description="Deposit via card",
    )
    await db.commit()
    log.info("stripe_webhook_processed", payment_intent_id=outcome.reference, credited=bool(credited))
    return {"ok": True}
