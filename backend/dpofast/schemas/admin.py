"""Administrator (DPO) schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from dpofast.core.security import check_password_strength
from dpofast.db.models.user import SubscriptionPlan, SubscriptionStatus
from dpofast.schemas.auth import UserOut
from dpofast.schemas.document import DocumentOut
from dpofast.schemas.task import TaskHistoryOut, TaskOut


class AdminStats(BaseModel):
    total_subscribers: int
    active_subscriptions: int
    pending_documents: int
    approved_documents: int
    total_reports: int
    tasks_in_review: int


class SubscriberOut(BaseModel):
    id: str
    username: str
    email: str
    full_name: str
    company: str | None
    company_name: str | None
    subscription_plan: str
    subscription_status: str
    is_active: bool
    created_at: datetime


class SubscriberDetails(SubscriberOut):
    sectors: int
    documents: int
    reports: int
    tasks: int
    tasks_in_review: int


class SubscriptionUpdate(BaseModel):
    subscription_plan: SubscriptionPlan | None = None
    subscription_status: SubscriptionStatus | None = None


class TaskReviewOut(BaseModel):
    task: TaskOut
    owner: SubscriberOut
    documents: list[DocumentOut]
    history: list[TaskHistoryOut]


class DocumentRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=5000)

    @field_validator("reason")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("A rejection reason is required")
        return v.strip()


class ReportStats(BaseModel):
    total: int
    average_score: int
    high: int = Field(description="Reports scoring 70 or more")
    medium: int = Field(description="Reports scoring 40 to 69")
    low: int = Field(description="Reports scoring below 40")
    by_type: dict[str, int]


class AdminCreateRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100, pattern=r"^[a-zA-Z0-9_.\-]+$")
    email: str = Field(..., max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=12, max_length=256)
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return check_password_strength(v)


class AdminOut(UserOut):
    pass
