"""Compliance task schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from dpofast.db.models.task import TaskPriority, TaskSeverity, TaskStatus
from dpofast.schemas.document import DocumentOut


class TaskOut(BaseModel):
    id: str
    user_id: str
    sector_id: str | None
    title: str
    description: str
    steps: list[str]
    category: str
    lgpd_requirement: str | None
    status: TaskStatus
    priority: TaskPriority
    severity: TaskSeverity
    progress: int
    source_question_id: int | None
    is_auto_generated: bool
    due_date: datetime | None
    completed_at: datetime | None
    submitted_at: datetime | None
    reviewed_at: datetime | None
    user_comments: str | None
    admin_comments: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskListResponse(BaseModel):
    items: list[TaskOut]
    total: int
    steps_hidden: bool = Field(
        default=False, description="True when the plan does not include task steps"
    )


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(default="", max_length=10000)
    sector_id: str | None = None
    steps: list[str] = Field(default_factory=list)
    category: str = Field(default="documentation", max_length=100)
    lgpd_requirement: str | None = Field(default=None, max_length=255)
    priority: TaskPriority = TaskPriority.MEDIUM
    severity: TaskSeverity = TaskSeverity.MEDIUM
    due_date: datetime | None = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskSubmitRequest(BaseModel):
    comments: str | None = Field(default=None, max_length=5000)


class TaskReviewRequest(BaseModel):
    comments: str | None = Field(default=None, max_length=5000)


class TaskHistoryOut(BaseModel):
    id: str
    task_id: str
    from_status: str | None
    to_status: str
    comments: str | None
    changed_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TaskAttachResponse(BaseModel):
    task_id: str
    documents: list[DocumentOut]
