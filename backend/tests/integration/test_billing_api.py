"""Integration tests for /api/v1/subscription and the Stripe webhook."""
import hashlib
import hmac
import json
import time

import pytest

from dpofast.api.v1.subscription import get_stripe_gateway

pytestmark = pytest.mark.asyncio

WEBHOOK_SECRET = "whsec_test_secret"


class FakeGateway:
    """Records calls instead of talking to Stripe."""

    def __init__(self) -> None:
        self.customers: list[str] = []
        self.sessions: list[tuple[str, str, str, str]] = []
        self.cancelled: list[str] = []

    async def create_customer(self, user) -> str:
        self.customers.append(user.id)
        return "cus_test"

    async def create_checkout_session(self, customer_id, price_id, plan, user_id):
        self.sessions.append((customer_id, price_id, plan, user_id))
        return "cs_test", "https://checkout.stripe.test/cs_test"

    async def cancel_at_period_end(self, subscription_id):
        self.cancelled.append(subscription_id)
        return {"status": "active", "current_period_end": 1_900_000_000}


@pytest.fixture
def gateway(app) -> FakeGateway:
    fake = FakeGateway()
    app.dependency_overrides[get_stripe_gateway] = lambda: fake
    return fake


def _signed(event: dict) -> tuple[bytes, dict[str, str]]:
    payload = json.dumps(event).encode()
    timestamp = int(time.time())
    signature = hmac.new(
        WEBHOOK_SECRET.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256
    ).hexdigest()
    return payload, {
        "Stripe-Signature": f"t={timestamp},v1={signature}",
        "Content-Type": "application/json",
    }


async def _post_event(client, event: dict):
    payload, headers = _signed(event)
    return await client.post("/api/v1/webhooks/stripe", content=payload, headers=headers)


async def _user_id(client, headers) -> str:
    return (await client.get("/api/v1/auth/me", headers=headers)).json()["id"]


# ─── Subscription status ──────────────────────────────────────────────────────

async def test_new_account_is_on_free_plan(client, user_headers):
    body = (await client.get("/api/v1/subscription", headers=user_headers)).json()
    assert body["plan"] == "free"
    assert body["effective_plan"] == "free"
    assert body["has_subscription"] is False
    assert body["limits"]["max_documents"] == 3

    usage = (await client.get("/api/v1/subscription/plan/limits", headers=user_headers)).json()
    assert usage["reports_this_month"] == 0
    assert usage["documents"] == 0


# ─── Checkout ─────────────────────────────────────────────────────────────────

async def test_checkout_creates_customer_once(client, user_headers, gateway):
    user_id = await _user_id(client, user_headers)

    for _ in range(2):
        resp = await client.post(
            "/api/v1/subscription/checkout", json={"plan": "basic"}, headers=user_headers
        )
        assert resp.status_code == 200
        assert resp.json() == {"session_id": "cs_test", "url": "https://checkout.stripe.test/cs_test"}

    assert gateway.customers == [user_id]
    assert gateway.sessions[0] == ("cus_test", "price_basic_test", "basic", user_id)


async def test_free_plan_cannot_be_purchased(client, user_headers, gateway):
    resp = await client.post(
        "/api/v1/subscription/checkout", json={"plan": "free"}, headers=user_headers
    )
    assert resp.status_code == 422
    assert gateway.sessions == []


async def test_plan_without_price_is_unavailable(client, user_headers, gateway):
    resp = await client.post(
        "/api/v1/subscription/checkout", json={"plan": "personalite"}, headers=user_headers
    )
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "BILL_002"


async def test_cancel_without_subscription(client, user_headers, gateway):
    resp = await client.post("/api/v1/subscription/cancel", headers=user_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "BILL_004"


# ─── Webhooks ─────────────────────────────────────────────────────────────────

async def test_webhook_rejects_bad_signature(client):
    payload = json.dumps({"id": "evt_x", "type": "invoice.paid", "data": {"object": {}}}).encode()
    resp = await client.post(
        "/api/v1/webhooks/stripe",
        content=payload,
        headers={"Stripe-Signature": f"t={int(time.time())},v1=deadbeef"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BILL_003"


async def test_webhook_requires_signature_header(client):
    resp = await client.post("/api/v1/webhooks/stripe", content=b"{}")
    assert resp.status_code == 400


async def test_unknown_event_is_acknowledged(client):
    resp = await _post_event(client, {"id": "evt_1", "type": "invoice.paid", "data": {"object": {}}})
    assert resp.status_code == 200
    assert resp.json() == {"received": True, "handled": False}


async def test_subscription_lifecycle(client, user_headers, gateway):
    user_id = await _user_id(client, user_headers)

    resp = await _post_event(
        client,
        {
            "id": "evt_checkout",
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "customer": "cus_test",
                    "subscription": "sub_test",
                    "metadata": {"user_id": user_id, "plan": "pro"},
                }
            },
        },
    )
    assert resp.json()["handled"] is True

    body = (await client.get("/api/v1/subscription", headers=user_headers)).json()
    assert body["effective_plan"] == "pro"
    assert body["has_subscription"] is True
    assert body["limits"]["max_documents"] == -1

    resp = await client.post("/api/v1/subscription/cancel", headers=user_headers)
    assert resp.status_code == 200
    assert resp.json()["cancel_at_period_end"] is True
    assert gateway.cancelled == ["sub_test"]

    await _post_event(
        client,
        {
            "id": "evt_deleted",
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": "sub_test", "customer": "cus_test"}},
        },
    )
    body = (await client.get("/api/v1/subscription", headers=user_headers)).json()
    assert body["plan"] == "free"
    assert body["status"] == "canceled"
    assert body["has_subscription"] is False
