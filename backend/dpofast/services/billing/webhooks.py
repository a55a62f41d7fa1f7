"""Applies verified Stripe webhook events to subscription state."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.core.metrics import WEBHOOK_EVENTS
from dpofast.db.models.notification import NotificationType
from dpofast.db.models.user import SubscriptionPlan, SubscriptionStatus, User
from dpofast.services.audit.logger import AuditLogger
from dpofast.services.notifications.notifier import notify

_log = structlog.get_logger(__name__)

# Stripe subscription.status -> local subscription status
_STATUS_MAP: dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
    "past_due": SubscriptionStatus.INACTIVE,
    "incomplete": SubscriptionStatus.INACTIVE,
    "paused": SubscriptionStatus.INACTIVE,
}


def map_stripe_status(status: str) -> SubscriptionStatus:
    return _STATUS_MAP.get(status, SubscriptionStatus.INACTIVE)


async def _find_user(
    db: AsyncSession,
    user_id: str | None = None,
    customer_id: str | None = None,
    subscription_id: str | None = None,
) -> User | None:
    clauses = []
    if user_id:
        clauses.append(User.id == user_id)
    if subscription_id:
        clauses.append(User.stripe_subscription_id == subscription_id)
    if customer_id:
        clauses.append(User.stripe_customer_id == customer_id)
    if not clauses:
        return None
    result = await db.execute(
        select(User).where(or_(*clauses), User.deleted_at.is_(None)).limit(1)
    )
    return result.scalar_one_or_none()


def _plan_from_metadata(metadata: dict[str, Any] | None) -> SubscriptionPlan | None:
    try:
        return SubscriptionPlan((metadata or {}).get("plan", ""))
    except ValueError:
        return None


class StripeEventHandler:
    """Dispatches on ``event["type"]``; unknown types are acknowledged and ignored."""

    def __init__(self, db: AsyncSession, audit: AuditLogger) -> None:
        self._db = db
        self._audit = audit

    async def handle(self, event: dict[str, Any]) -> bool:
        event_type = event["type"]
        WEBHOOK_EVENTS.labels(event_type=event_type).inc()
        data = event["data"]["object"]

        if event_type == "checkout.session.completed":
            user = await self._checkout_completed(data)
        elif event_type == "customer.subscription.updated":
            user = await self._subscription_updated(data)
        elif event_type == "customer.subscription.deleted":
            user = await self._subscription_deleted(data)
        else:
            _log.info("stripe_event_ignored", event_type=event_type)
            return False

        if user is None:
            _log.warning("stripe_event_unmatched", event_type=event_type, event_id=event.get("id"))
            return False

        await self._audit.log(
            event_type=f"billing.{event_type}",
            entity_type="User",
            entity_id=user.id,
            payload={
                "stripe_event_id": event.get("id"),
                "plan": user.subscription_plan,
                "status": user.subscription_status,
            },
        )
        return True

    async def _checkout_completed(self, session: dict[str, Any]) -> User | None:
        metadata = session.get("metadata") or {}
        user = await _find_user(
            self._db, user_id=metadata.get("user_id"), customer_id=session.get("customer")
        )
        if user is None:
            return None
        plan = _plan_from_metadata(metadata)
        if plan is not None:
            user.subscription_plan = plan
        user.subscription_status = SubscriptionStatus.ACTIVE
        user.stripe_customer_id = session.get("customer") or user.stripe_customer_id
        user.stripe_subscription_id = session.get("subscription") or user.stripe_subscription_id
        await notify(
            self._db,
            user.id,
            "Assinatura ativada",
            f"Seu plano {user.subscription_plan} está ativo.",
            NotificationType.SUBSCRIPTION_UPDATED,
        )
        _log.info("subscription_activated", user_id=user.id, plan=user.subscription_plan)
        return user

    async def _subscription_updated(self, subscription: dict[str, Any]) -> User | None:
        user = await _find_user(
            self._db,
            subscription_id=subscription.get("id"),
            customer_id=subscription.get("customer"),
        )
        if user is None:
            return None
        user.subscription_status = map_stripe_status(subscription.get("status", ""))
        plan = _plan_from_metadata(subscription.get("metadata"))
        if plan is not None:
            user.subscription_plan = plan
        _log.info("subscription_updated", user_id=user.id, status=user.subscription_status)
        return user

    async def _subscription_deleted(self, subscription: dict[str, Any]) -> User | None:
        user = await _find_user(
            self._db,
            subscription_id=subscription.get("id"),
            customer_id=subscription.get("customer"),
        )
        if user is None:
            return None
        user.subscription_status = SubscriptionStatus.CANCELED
        user.subscription_plan = SubscriptionPlan.FREE
        user.stripe_subscription_id = None
        await notify(
            self._db,
            user.id,
            "Assinatura cancelada",
            "Sua assinatura foi encerrada e a conta voltou ao plano gratuito.",
            NotificationType.SUBSCRIPTION_UPDATED,
        )
        _log.info("subscription_canceled", user_id=user.id)
        return user
