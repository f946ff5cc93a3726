from __future__ import annotations
from decimal import Decimal
import pytest
import stripe

from lifekit.services import payments
from lifekit.services.payments import PaymentOutcome
from conftest import auth_headers, balance_of, fund


def _outcome(user_id, reference="pi_test_1", amount="25.00", succeeded=True):
    return PaymentOutcome(reference=reference, succeeded=succeeded, amount=Decimal(amount),
                          currency="USD", metadata={"user_id": str(user_id)})


@pytest.mark.asyncio
async def test_dashboard_creates_wallet_lazily(client, users):
    r = await client.get("/wallet", headers=auth_headers(users["client"]))
    assert r.status_code == 200
    body = r.json()
    assert Decimal(body["balance"]) == Decimal("0")
    assert body["currency"] == "USD"
    assert body["transactions"] == []


@pytest.mark.asyncio
async def test_deposit_requires_configured_processor(client, users):
    r = await client.post("/wallet/deposit", headers=auth_headers(users["client"]), json={"amount": "25.00"})
    assert r.status_code == 500
    assert r.json()["error"]["kind"] == "dependency_failure"


@pytest.mark.asyncio
async def test_deposit_intent(client, users, monkeypatch):
    seen = {}

    def _create(**kw):
        seen.update(kw)
        return {"id": "pi_test_1", "client_secret": "pi_test_1_secret"}

    monkeypatch.setattr(payments, "create_deposit_intent", _create)
    r = await client.post("/wallet/deposit", headers=auth_headers(users["client"]), json={"amount": "25.00"})
    assert r.status_code == 200, r.text
    assert r.json() == {"client_secret": "pi_test_1_secret", "payment_intent_id": "pi_test_1"}
    assert seen["amount"] == Decimal("25.00")
    assert seen["metadata"]["user_id"] == str(users["client"])

    r = await client.post("/wallet/deposit", headers=auth_headers(users["client"]), json={"amount": "0"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_confirm_deposit_is_idempotent(client, sessionmaker, users, monkeypatch):
    monkeypatch.setattr(payments, "retrieve_intent", lambda intent_id: _outcome(users["client"], reference=intent_id))
    hdrs = auth_headers(users["client"])

    r = await client.post("/wallet/confirm-deposit", headers=hdrs, json={"payment_intent_id": "pi_test_1"})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "credited"
    assert Decimal(r.json()["balance"]) == Decimal("25.00")

    r = await client.post("/wallet/confirm-deposit", headers=hdrs, json={"payment_intent_id": "pi_test_1"})
    assert r.json()["status"] == "already_processed"
    assert await balance_of(sessionmaker, users["client"]) == Decimal("25.00")

    r = await client.get("/wallet", headers=hdrs)
    (tx,) = r.json()["transactions"]
    assert tx["kind"] == "deposit"
    assert Decimal(tx["amount"]) == Decimal("25.00")


@pytest.mark.asyncio
async def test_confirm_deposit_rejects_unfinished_or_foreign_payment(client, sessionmaker, users, monkeypatch):
    hdrs = auth_headers(users["client"])
    monkeypatch.setattr(payments, "retrieve_intent", lambda intent_id: _outcome(users["client"], succeeded=False))
    r = await client.post("/wallet/confirm-deposit", headers=hdrs, json={"payment_intent_id": "pi_test_1"})
    assert r.status_code == 400

    monkeypatch.setattr(payments, "retrieve_intent", lambda intent_id: _outcome(users["stranger"]))
    r = await client.post("/wallet/confirm-deposit", headers=hdrs, json={"payment_intent_id": "pi_test_1"})
    assert r.status_code == 404
    assert await balance_of(sessionmaker, users["client"]) == Decimal("0.00")


@pytest.mark.asyncio
async def test_withdraw(client, sessionmaker, users):
    async with sessionmaker() as s:
        await fund(s, users["client"], "40.00")
    hdrs = auth_headers(users["client"])

    r = await client.post("/wallet/withdraw", headers=hdrs, json={"amount": "15.50"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert Decimal(body["new_balance"]) == Decimal("24.50")
    assert body["transaction"]["kind"] == "withdrawal"
    assert Decimal(body["transaction"]["amount"]) == Decimal("-15.50")

    r = await client.post("/wallet/withdraw", headers=hdrs, json={"amount": "100"})
    assert r.status_code == 402
    assert await balance_of(sessionmaker, users["client"]) == Decimal("24.50")


@pytest.mark.asyncio
async def test_webhook_shares_idempotency_key_with_confirm(client, sessionmaker, users, monkeypatch):
    event = {
        "type": "payment_intent.succeeded",
        "data": {"object": {
            "id": "pi_hook_1", "status": "succeeded", "amount_received": 1250, "currency": "usd",
            "metadata": {"user_id": str(users["client"])},
        }},
    }
    monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig_header, secret: event)

    for _ in range(2):
        r = await client.post("/stripe/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=abc"})
        assert r.status_code == 200
    assert await balance_of(sessionmaker, users["client"]) == Decimal("12.50")

    monkeypatch.setattr(payments, "retrieve_intent", lambda intent_id: _outcome(users["client"], reference="pi_hook_1", amount="12.50"))
    r = await client.post("/wallet/confirm-deposit", headers=auth_headers(users["client"]),
                          json={"payment_intent_id": "pi_hook_1"})
    assert r.json()["status"] == "already_processed"
    assert await balance_of(sessionmaker, users["client"]) == Decimal("12.50")


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(client, monkeypatch):
    def _bad(payload, sig_header, secret):
        raise stripe.SignatureVerificationError("bad signature", sig_header)

    monkeypatch.setattr(stripe.Webhook, "construct_event", _bad)
    r = await client.post("/stripe/webhook", content=b"{}", headers={"Stripe-Signature": "nope"})
    assert r.status_code == 400

    monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, sig_header, secret: {"type": "charge.refunded", "data": {"object": {}}})
    r = await client.post("/stripe/webhook", content=b"{}", headers={"Stripe-Signature": "t=1"})
    assert r.json() == {"ignored": "charge.refunded"}


@pytest.mark.asyncio
async def test_foreign_payment_is_hidden_whatever_its_state(client, users, monkeypatch):
    monkeypatch.setattr(payments, "retrieve_intent",
                        lambda intent_id: _outcome(users["stranger"], reference=intent_id, succeeded=False))
    r = await client.post("/wallet/confirm-deposit", headers=auth_headers(users["client"]),
                          json={"payment_intent_id": "pi_someone_else"})
    assert r.status_code == 404
    assert r.json()["error"]["kind"] == "not_found"
