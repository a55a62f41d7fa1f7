"""Subscription, plan limit, notification and dashboard schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from dpofast.db.models.user import SubscriptionPlan


class PlanLimitsOut(BaseModel):
    reports_per_month: int = Field(description="-1 means unlimited")
    max_documents: int = Field(description="-1 means unlimited")
    advanced_features: bool
    priority_support: bool
    task_details: bool


class SubscriptionOut(BaseModel):
    plan: str
    status: str
    effective_plan: str
    has_subscription: bool
    limits: PlanLimitsOut


class PlanUsageOut(BaseModel):
    plan: str
    limits: PlanLimitsOut
    reports_this_month: int
    documents: int


class CheckoutRequest(BaseModel):
    plan: SubscriptionPlan


class CheckoutResponse(BaseModel):
    session_id: str
    url: str


class CancelResponse(BaseModel):
    status: str
    cancel_at_period_end: bool = True
    current_period_end: int | None = None


class WebhookAck(BaseModel):
    received: bool = True
    handled: bool


# ── Notifications ──────────────────────────────────────────────────────── #


class NotificationOut(BaseModel):
    id: str
    title: str
    message: str
    type: str
    related_task_id: str | None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UnreadCountOut(BaseModel):
    unread: int


class MarkAllReadOut(BaseModel):
    updated: int


# ── Dashboard ──────────────────────────────────────────────────────────── #


class DashboardSectorOut(BaseModel):
    sector_id: str
    name: str
    progress: int
    score: int | None
    is_complete: bool


class DashboardOut(BaseModel):
    onboarding_completed: bool
    company_name: str | None
    overall_score: int
    sectors: list[DashboardSectorOut]
    pending_tasks: int
    tasks_by_status: dict[str, int]
    documents_total: int
    documents_valid: int
    documents_pending: int
    last_report_at: datetime | None
    plan: str
    limits: PlanLimitsOut
    suggested_plan: str
    unread_notifications: int
