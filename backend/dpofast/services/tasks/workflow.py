"""
Compliance task state machine.

    pending ⇄ in_progress ─┬─> completed
                           └─> in_review ─┬─> approved
                 rejected ───^            └─> rejected
    pending | in_progress | rejected ─> cancelled   (questionnaire reset)

Every transition appends a TaskStatusHistory row and an audit event.
Transitions into review, approval and rejection also notify the owner.
"""

from __future__ import annotations

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.core.errors import ConflictError, ErrorCode, ValidationError
from dpofast.core.metrics import TASK_TRANSITIONS
from dpofast.db.base import utcnow
from dpofast.db.models.document import Document
from dpofast.db.models.notification import NotificationType
from dpofast.db.models.task import (
    OPEN_TASK_STATUSES,
    ComplianceTask,
    TaskStatus,
    TaskStatusHistory,
)
from dpofast.db.models.user import User
from dpofast.services.audit.logger import AuditLogger
from dpofast.services.notifications.notifier import notify

_log = structlog.get_logger(__name__)

# Statuses a task owner may set directly through PATCH /tasks/{id}/status
USER_TRANSITIONS: dict[str, frozenset[str]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.PENDING, TaskStatus.COMPLETED}),
}

SUBMITTABLE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})
LOCKED_STATUSES = frozenset({TaskStatus.IN_REVIEW, TaskStatus.APPROVED})


class TaskWorkflow:
    """Applies status changes to a task and records their side effects."""

    def __init__(self, db: AsyncSession, audit: AuditLogger) -> None:
        self._db = db
        self._audit = audit

    # ── Owner actions ────────────────────────────────────────────────── #

    async def change_status(self, task: ComplianceTask, to_status: str, actor: User) -> None:
        allowed = USER_TRANSITIONS.get(task.status, frozenset())
        if to_status not in allowed:
            raise self._invalid(task, to_status)
        await self._transition(task, to_status, actor)

    async def submit(self, task: ComplianceTask, actor: User, comments: str | None) -> None:
        if task.status not in SUBMITTABLE_STATUSES:
            raise self._invalid(task, TaskStatus.IN_REVIEW)
        await self._require_evidence(task)
        task.submitted_at = utcnow()
        task.user_comments = comments
        task.progress = 50
        await self._transition(task, TaskStatus.IN_REVIEW, actor, comments)

    async def resubmit(self, task: ComplianceTask, actor: User, comments: str | None) -> None:
        if task.status != TaskStatus.REJECTED:
            raise self._invalid(task, TaskStatus.IN_REVIEW)
        await self._require_evidence(task)
        task.submitted_at = utcnow()
        task.user_comments = comments
        task.admin_comments = None
        task.progress = 50
        await self._transition(task, TaskStatus.IN_REVIEW, actor, comments)

    # ── Reviewer actions ─────────────────────────────────────────────── #

    async def approve(self, task: ComplianceTask, reviewer: User, comments: str | None) -> None:
        if task.status != TaskStatus.IN_REVIEW:
            raise self._invalid(task, TaskStatus.APPROVED)
        self._mark_reviewed(task, reviewer, comments)
        await self._transition(task, TaskStatus.APPROVED, reviewer, comments)

    async def reject(self, task: ComplianceTask, reviewer: User, comments: str | None) -> None:
        if not comments or not comments.strip():
            raise ValidationError(
                "A rejection reason is required",
                code=ErrorCode.TASK_COMMENTS_REQUIRED,
            )
        if task.status != TaskStatus.IN_REVIEW:
            raise self._invalid(task, TaskStatus.REJECTED)
        self._mark_reviewed(task, reviewer, comments)
        task.progress = 25
        await self._transition(task, TaskStatus.REJECTED, reviewer, comments)

    # ── System actions ───────────────────────────────────────────────── #

    async def cancel(self, task: ComplianceTask, actor: User, reason: str) -> None:
        if task.status not in OPEN_TASK_STATUSES:
            raise self._invalid(task, TaskStatus.CANCELLED)
        await self._transition(task, TaskStatus.CANCELLED, actor, reason)

    # ── Internals ────────────────────────────────────────────────────── #

    async def evidence_count(self, task: ComplianceTask) -> int:
        result = await self._db.execute(
            select(func.count())
            .select_from(Document)
            .where(Document.task_id == task.id, Document.deleted_at.is_(None))
        )
        return result.scalar_one()

    async def _require_evidence(self, task: ComplianceTask) -> None:
        if await self.evidence_count(task) == 0:
            raise ValidationError(
                "Attach at least one document before submitting the task for review",
                detail={"task_id": task.id},
                code=ErrorCode.TASK_EVIDENCE_REQUIRED,
            )

    @staticmethod
    def _mark_reviewed(task: ComplianceTask, reviewer: User, comments: str | None) -> None:
        task.reviewed_at = utcnow()
        task.reviewed_by = reviewer.id
        task.admin_comments = comments

    @staticmethod
    def _invalid(task: ComplianceTask, to_status: str) -> ConflictError:
        return ConflictError(
            ErrorCode.TASK_INVALID_TRANSITION,
            f"Cannot move task from '{task.status}' to '{to_status}'",
            detail={"task_id": task.id, "from": str(task.status), "to": str(to_status)},
        )

    async def _transition(
        self,
        task: ComplianceTask,
        to_status: str,
        actor: User,
        comments: str | None = None,
    ) -> TaskStatusHistory:
        from_status = task.status
        task.status = to_status
        if to_status in (TaskStatus.COMPLETED, TaskStatus.APPROVED):
            task.completed_at = utcnow()
            task.progress = 100
        elif to_status == TaskStatus.PENDING:
            task.completed_at = None

        history = TaskStatusHistory(
            task_id=task.id,
            from_status=from_status,
            to_status=to_status,
            comments=comments,
            changed_by=actor.id,
        )
        self._db.add(history)
        await self._db.flush()

        await self._notify_owner(task, to_status, comments)
        await self._audit.log(
            event_type="task.status_changed",
            actor=actor,
            entity_type="ComplianceTask",
            entity_id=task.id,
            payload={"from": from_status, "to": to_status, "comments": comments},
        )
        TASK_TRANSITIONS.labels(to_status=str(to_status)).inc()
        _log.info(
            "task_status_changed",
            task_id=task.id,
            from_status=str(from_status),
            to_status=str(to_status),
        )
        return history

    async def _notify_owner(
        self, task: ComplianceTask, to_status: str, comments: str | None
    ) -> None:
        if to_status == TaskStatus.IN_REVIEW:
            title = "Tarefa em Revisão"
            message = f'Sua tarefa "{task.title}" foi enviada para revisão do DPO.'
            type_ = NotificationType.TASK_SUBMITTED
        elif to_status == TaskStatus.APPROVED:
            title = "Tarefa Aprovada!"
            message = f'Sua tarefa "{task.title}" foi aprovada pelo DPO.'
            if comments:
                message += f" Comentários: {comments}"
            type_ = NotificationType.TASK_APPROVED
        elif to_status == TaskStatus.REJECTED:
            title = "Tarefa Rejeitada"
            message = f'Sua tarefa "{task.title}" foi rejeitada. Motivo: {comments}'
            type_ = NotificationType.TASK_REJECTED
        else:
            return
        await notify(self._db, task.user_id, title, message, type_, related_task_id=task.id)
