"""Subscription, checkout and Stripe webhook API endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, Request

from dpofast.api.deps import Audit, CurrentUser, DbSession
from dpofast.config.settings import get_settings
from dpofast.core.errors import (
    ErrorCode,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from dpofast.db.models.user import SubscriptionStatus
from dpofast.schemas.billing import (
    CancelResponse,
    CheckoutRequest,
    CheckoutResponse,
    PlanLimitsOut,
    PlanUsageOut,
    SubscriptionOut,
    WebhookAck,
)
from dpofast.services.billing.plans import (
    PAID_PLANS,
    count_library_documents,
    count_reports_this_month,
    effective_plan,
    limits_for,
)
from dpofast.services.billing.stripe_gateway import StripeGateway, construct_webhook_event
from dpofast.services.billing.webhooks import StripeEventHandler

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/subscription", tags=["subscription"])
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def get_stripe_gateway() -> StripeGateway:
    return StripeGateway(get_settings())


Gateway = Annotated[StripeGateway, Depends(get_stripe_gateway)]


@router.get("", response_model=SubscriptionOut, summary="Current subscription")
async def subscription_status(current_user: CurrentUser) -> SubscriptionOut:
    return SubscriptionOut(
        plan=current_user.subscription_plan,
        status=current_user.subscription_status,
        effective_plan=effective_plan(current_user),
        has_subscription=current_user.stripe_subscription_id is not None,
        limits=PlanLimitsOut(**limits_for(current_user).as_dict()),
    )


@router.get("/plan/limits", response_model=PlanUsageOut, summary="Plan limits and usage")
async def plan_limits(current_user: CurrentUser, db: DbSession) -> PlanUsageOut:
    return PlanUsageOut(
        plan=effective_plan(current_user),
        limits=PlanLimitsOut(**limits_for(current_user).as_dict()),
        reports_this_month=await count_reports_this_month(db, current_user.id),
        documents=await count_library_documents(db, current_user.id),
    )


@router.post("/checkout", response_model=CheckoutResponse, summary="Start a Stripe checkout")
async def create_checkout(
    body: CheckoutRequest,
    current_user: CurrentUser,
    gateway: Gateway,
    db: DbSession,
    audit: Audit,
) -> CheckoutResponse:
    """Creates the Stripe customer on first use, then a subscription checkout session."""
    if body.plan not in PAID_PLANS:
        raise ValidationError(
            f"Plan '{body.plan}' cannot be purchased",
            detail={"purchasable": [str(p) for p in PAID_PLANS]},
        )
    price_id = get_settings().stripe_price_for(body.plan)
    if not price_id:
        raise ServiceUnavailableError(
            ErrorCode.BILLING_PRICE_MISSING, f"No Stripe price configured for plan '{body.plan}'"
        )

    if current_user.stripe_customer_id is None:
        current_user.stripe_customer_id = await gateway.create_customer(current_user)
        await db.flush()

    session_id, url = await gateway.create_checkout_session(
        current_user.stripe_customer_id, price_id, body.plan, current_user.id
    )
    await audit.log(
        event_type="billing.checkout_started",
        actor=current_user,
        entity_type="User",
        entity_id=current_user.id,
        payload={"plan": body.plan, "session_id": session_id},
    )
    await db.commit()
    return CheckoutResponse(session_id=session_id, url=url)


@router.post("/cancel", response_model=CancelResponse, summary="Cancel at period end")
async def cancel_subscription(
    current_user: CurrentUser, gateway: Gateway, db: DbSession, audit: Audit
) -> CancelResponse:
    if current_user.stripe_subscription_id is None:
        raise NotFoundError("Subscription", code=ErrorCode.BILLING_NO_SUBSCRIPTION)

    result = await gateway.cancel_at_period_end(current_user.stripe_subscription_id)
    await audit.log(
        event_type="billing.cancel_requested",
        actor=current_user,
        entity_type="User",
        entity_id=current_user.id,
        payload={"subscription_id": current_user.stripe_subscription_id},
    )
    await db.commit()
    _log.info("subscription_cancel_requested", user_id=current_user.id)
    return CancelResponse(
        status=result["status"] or SubscriptionStatus.ACTIVE,
        current_period_end=result["current_period_end"],
    )


@webhook_router.post("/stripe", response_model=WebhookAck, summary="Stripe webhook receiver")
async def stripe_webhook(
    request: Request,
    db: DbSession,
    audit: Audit,
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
) -> WebhookAck:
    """Signature-verified; unknown event types are acknowledged and ignored."""
    payload = await request.body()
    event = construct_webhook_event(payload, stripe_signature, get_settings())
    handled = await StripeEventHandler(db, audit).handle(event)
    await db.commit()
    return WebhookAck(received=True, handled=handled)
