"""
Stripe API access.

The stripe SDK is synchronous, so every call runs in Starlette's threadpool
to keep the event loop free. Provider failures surface as BILL_005.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import stripe
import structlog
from starlette.concurrency import run_in_threadpool

from dpofast.config.settings import Settings
from dpofast.core.errors import AppError, ErrorCode, ServiceUnavailableError
from dpofast.db.models.user import User

_log = structlog.get_logger(__name__)


class StripeGateway:
    """Thin async wrapper over the Stripe customer, checkout and subscription APIs."""

    def __init__(self, settings: Settings) -> None:
        if settings.stripe_secret_key is None:
            raise ServiceUnavailableError(
                ErrorCode.BILLING_UNAVAILABLE, "Billing is not configured on this server"
            )
        self._api_key = settings.stripe_secret_key.get_secret_value()
        self._settings = settings

    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return await run_in_threadpool(fn, *args, api_key=self._api_key, **kwargs)
        except stripe.StripeError as exc:
            _log.error("stripe_call_failed", operation=fn.__qualname__, error=str(exc))
            raise AppError(
                code=ErrorCode.BILLING_PROVIDER_ERROR,
                message="Payment provider request failed",
                http_status=502,
            ) from exc

    async def create_customer(self, user: User) -> str:
        customer = await self._call(
            stripe.Customer.create,
            email=user.email,
            name=user.full_name,
            metadata={"user_id": user.id},
        )
        _log.info("stripe_customer_created", user_id=user.id)
        return customer["id"]

    async def create_checkout_session(
        self, customer_id: str, price_id: str, plan: str, user_id: str
    ) -> tuple[str, str]:
        """Create a subscription-mode checkout session; returns (session id, url)."""
        metadata = {"user_id": user_id, "plan": plan}
        session = await self._call(
            stripe.checkout.Session.create,
            customer=customer_id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=self._settings.checkout_success_url,
            cancel_url=self._settings.checkout_cancel_url,
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )
        return session["id"], session["url"]

    async def cancel_at_period_end(self, subscription_id: str) -> dict[str, Any]:
        subscription = await self._call(
            stripe.Subscription.modify,
            subscription_id,
            cancel_at_period_end=True,
        )
        return {
            "status": subscription["status"],
            "current_period_end": getattr(subscription, "current_period_end", None),
        }


def construct_webhook_event(
    payload: bytes, signature: str | None, settings: Settings
) -> dict[str, Any]:
    """
    Verify a webhook payload's signature and return the event as a plain dict.

    Raises:
        ServiceUnavailableError: If no webhook secret is configured.
        AppError(BILL_003): If the signature or payload is invalid.
    """
    if settings.stripe_webhook_secret is None:
        raise ServiceUnavailableError(
            ErrorCode.BILLING_UNAVAILABLE, "Stripe webhooks are not configured"
        )
    if not signature:
        raise AppError(
            code=ErrorCode.BILLING_WEBHOOK_INVALID,
            message="Missing Stripe-Signature header",
            http_status=400,
        )
    try:
        stripe.Webhook.construct_event(
            payload, signature, settings.stripe_webhook_secret.get_secret_value()
        )
        return json.loads(payload)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        _log.warning("stripe_webhook_rejected", error=str(exc))
        raise AppError(
            code=ErrorCode.BILLING_WEBHOOK_INVALID,
            message="Invalid Stripe webhook payload or signature",
            http_status=400,
        ) from exc
