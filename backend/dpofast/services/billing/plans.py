"""
Subscription plan limits and enforcement.

A plan only applies while the subscription is active; every other status
falls back to the free plan. ``-1`` means unlimited.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.core.errors import PlanLimitError
from dpofast.db.base import utcnow
from dpofast.db.models.company import CompanyProfile
from dpofast.db.models.document import Document
from dpofast.db.models.report import ComplianceReport
from dpofast.db.models.user import SubscriptionPlan, SubscriptionStatus, User

UNLIMITED = -1


@dataclass(frozen=True)
class PlanLimits:
    reports_per_month: int
    max_documents: int
    advanced_features: bool
    priority_support: bool
    task_details: bool

    def as_dict(self) -> dict[str, int | bool]:
        return asdict(self)


PLAN_LIMITS: dict[str, PlanLimits] = {
    SubscriptionPlan.FREE: PlanLimits(
        reports_per_month=5,
        max_documents=3,
        advanced_features=False,
        priority_support=False,
        task_details=False,
    ),
    SubscriptionPlan.BASIC: PlanLimits(
        reports_per_month=UNLIMITED,
        max_documents=5,
        advanced_features=False,
        priority_support=False,
        task_details=True,
    ),
    SubscriptionPlan.PRO: PlanLimits(
        reports_per_month=UNLIMITED,
        max_documents=UNLIMITED,
        advanced_features=True,
        priority_support=True,
        task_details=True,
    ),
    SubscriptionPlan.PERSONALITE: PlanLimits(
        reports_per_month=UNLIMITED,
        max_documents=UNLIMITED,
        advanced_features=True,
        priority_support=True,
        task_details=True,
    ),
}

PAID_PLANS = (SubscriptionPlan.BASIC, SubscriptionPlan.PRO, SubscriptionPlan.PERSONALITE)


def effective_plan(user: User) -> SubscriptionPlan:
    if user.subscription_status != SubscriptionStatus.ACTIVE:
        return SubscriptionPlan.FREE
    try:
        return SubscriptionPlan(user.subscription_plan)
    except ValueError:
        return SubscriptionPlan.FREE


def limits_for(user: User) -> PlanLimits:
    return PLAN_LIMITS[effective_plan(user)]


def suggested_plan(
    current: SubscriptionPlan, profile: CompanyProfile | None, sector_count: int
) -> SubscriptionPlan:
    """Pro stays pro; large companies or 5+ sectors need pro; everyone else basic."""
    if current in (SubscriptionPlan.PRO, SubscriptionPlan.PERSONALITE):
        return current
    if profile is not None and profile.company_size == "large":
        return SubscriptionPlan.PRO
    if sector_count >= 5:
        return SubscriptionPlan.PRO
    return SubscriptionPlan.BASIC


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


async def count_library_documents(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Document)
        .where(
            Document.user_id == user_id,
            Document.deleted_at.is_(None),
            Document.task_id.is_(None),
        )
    )
    return result.scalar_one()


async def count_reports_this_month(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(ComplianceReport)
        .where(
            ComplianceReport.user_id == user_id,
            ComplianceReport.created_at >= _month_start(utcnow()),
        )
    )
    return result.scalar_one()


async def enforce_document_limit(db: AsyncSession, user: User, adding: int = 1) -> None:
    """Raise PlanLimitError if ``adding`` more library documents exceed the plan."""
    limits = limits_for(user)
    if limits.max_documents == UNLIMITED:
        return
    current = await count_library_documents(db, user.id)
    if current + adding > limits.max_documents:
        raise PlanLimitError("documents", current, limits.max_documents, effective_plan(user))


async def enforce_report_limit(db: AsyncSession, user: User) -> None:
    limits = limits_for(user)
    if limits.reports_per_month == UNLIMITED:
        return
    current = await count_reports_this_month(db, user.id)
    if current >= limits.reports_per_month:
        raise PlanLimitError("reports", current, limits.reports_per_month, effective_plan(user))
