"""Thin wrapper over the Stripe SDK.

The rest of the code only sees customer references, a success flag and the
payment intent id, which doubles as the idempotency key of a payment event.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID
import stripe
import structlog

from lifekit.config import settings
from lifekit.errors import DependencyFailure

log = structlog.get_logger(__name__)

CENTS = Decimal("100")


@dataclass(frozen=True)
class PaymentOutcome:
    reference: str
    succeeded: bool
    amount: Decimal
    currency: str
    metadata: dict = field(default_factory=dict)


def is_configured() -> bool:
    return bool(settings.stripe_secret_key)


def _client():
    if not is_configured():
        raise DependencyFailure("Payment processor not configured")
    stripe.api_key = settings.stripe_secret_key
    return stripe


def to_cents(amount: Decimal) -> int:
    return int((amount * CENTS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / CENTS).quantize(Decimal("0.01"))


def create_customer(owner_id: UUID, email: str | None = None) -> str | None:
    """Provision a processor-side customer for a new wallet. None when Stripe is not configured."""
    if not is_configured():
        log.warning("payment_customer_skipped", owner_id=str(owner_id), reason="stripe_not_configured")
        return None
    try:
        customer = _client().Customer.create(email=email, metadata={"user_id": str(owner_id)})
    except stripe.StripeError as e:
        log.error("payment_customer_failed", owner_id=str(owner_id), error=str(e))
        raise DependencyFailure("Payment processor unavailable") from e
    return customer["id"]


def create_deposit_intent(*, customer_ref: str | None, amount: Decimal, currency: str, metadata: dict) -> dict:
    client = _client()
    try:
        intent = client.PaymentIntent.create(
            amount=to_cents(amount),
            currency=currency.lower(),
            customer=customer_ref,
            automatic_payment_methods={"enabled": True},
            metadata=metadata,
        )
    except stripe.StripeError as e:
        log.error("payment_intent_create_failed", error=str(e))
        raise DependencyFailure("Failed to initialize deposit") from e
    return {"id": intent["id"], "client_secret": intent["client_secret"]}


def outcome_from_intent(intent) -> PaymentOutcome:
    cents = intent.get("amount_received") or intent.get("amount") or 0
    return PaymentOutcome(
        reference=intent["id"],
        succeeded=intent.get("status") == "succeeded",
        amount=from_cents(cents),
        currency=(intent.get("currency") or settings.default_currency).upper(),
        metadata=dict(intent.get("metadata") or {}),
    )


def retrieve_intent(intent_id: str) -> PaymentOutcome:
    client = _client()
    try:
        intent = client.PaymentIntent.retrieve(intent_id)
    except stripe.InvalidRequestError as e:
        log.info("payment_intent_unknown", payment_intent_id=intent_id)
        raise DependencyFailure("Payment could not be verified") from e
    except stripe.StripeError as e:
        log.error("payment_intent_retrieve_failed", payment_intent_id=intent_id, error=str(e))
        raise DependencyFailure("Payment processor unavailable") from e
    return outcome_from_intent(intent)


def construct_event(payload: bytes, signature: str | None):
    if not settings.stripe_webhook_secret:
        raise DependencyFailure("Payment processor not configured")
    return stripe.Webhook.construct_event(
        payload=payload.decode("utf-8"),
        sig_header=signature or "",
        secret=settings.stripe_webhook_secret,
    )
