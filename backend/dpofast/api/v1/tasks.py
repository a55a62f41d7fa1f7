"""Compliance task API endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, File, Query, UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.api.deps import Audit, CurrentUser, DbSession, is_admin
from dpofast.api.v1.documents import prepare_upload, record_upload
from dpofast.api.v1.sectors import load_sector
from dpofast.config.settings import get_settings
from dpofast.core.errors import ConflictError, ErrorCode, NotFoundError, ValidationError
from dpofast.db.models.task import (
    ComplianceTask,
    TaskPriority,
    TaskStatus,
    TaskStatusHistory,
)
from dpofast.db.models.user import User
from dpofast.schemas.document import DocumentOut
from dpofast.schemas.task import (
    TaskAttachResponse,
    TaskCreate,
    TaskHistoryOut,
    TaskListResponse,
    TaskOut,
    TaskStatusUpdate,
    TaskSubmitRequest,
)
from dpofast.services.billing.plans import limits_for
from dpofast.services.storage.uploads import PendingUpload, staged_files
from dpofast.services.tasks.workflow import LOCKED_STATUSES, TaskWorkflow

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


async def load_task(
    db: AsyncSession, user: User, task_id: str, allow_admin: bool = False
) -> ComplianceTask:
    task = await db.get(ComplianceTask, task_id)
    if task is None or (task.user_id != user.id and not (allow_admin and is_admin(user))):
        raise NotFoundError("ComplianceTask", task_id, code=ErrorCode.TASK_NOT_FOUND)
    return task


def _steps_visible(user: User) -> bool:
    return is_admin(user) or limits_for(user).task_details


def task_out(task: ComplianceTask, show_steps: bool = True) -> TaskOut:
    out = TaskOut.model_validate(task)
    return out if show_steps else out.model_copy(update={"steps": []})


@router.get("", response_model=TaskListResponse, summary="List own compliance tasks")
async def list_tasks(
    current_user: CurrentUser,
    db: DbSession,
    status: TaskStatus | None = Query(default=None),  # noqa: B008
    sector_id: str | None = Query(default=None),
    priority: TaskPriority | None = Query(default=None),  # noqa: B008
    include_cancelled: bool = Query(default=False),
) -> TaskListResponse:
    """Newest first. Plans without task details get tasks without steps."""
    query = select(ComplianceTask).where(ComplianceTask.user_id == current_user.id)
    if status:
        query = query.where(ComplianceTask.status == status)
    elif not include_cancelled:
        query = query.where(ComplianceTask.status != TaskStatus.CANCELLED)
    if sector_id:
        query = query.where(ComplianceTask.sector_id == sector_id)
    if priority:
        query = query.where(ComplianceTask.priority == priority)

    result = await db.execute(query.order_by(ComplianceTask.created_at.desc()))
    tasks = result.scalars().all()
    show_steps = _steps_visible(current_user)
    return TaskListResponse(
        items=[task_out(t, show_steps) for t in tasks],
        total=len(tasks),
        steps_hidden=not show_steps,
    )


@router.post("", response_model=TaskOut, status_code=201, summary="Create a manual task")
async def create_task(
    body: TaskCreate, current_user: CurrentUser, db: DbSession, audit: Audit
) -> TaskOut:
    if body.sector_id:
        await load_sector(db, current_user, body.sector_id)

    task = ComplianceTask(
        user_id=current_user.id,
        sector_id=body.sector_id,
        title=body.title.strip(),
        description=body.description,
        steps=[s.strip() for s in body.steps if s.strip()],
        category=body.category,
        lgpd_requirement=body.lgpd_requirement,
        status=TaskStatus.PENDING,
        priority=body.priority,
        severity=body.severity,
        progress=0,
        is_auto_generated=False,
        due_date=body.due_date,
    )
    db.add(task)
    await db.flush()
    db.add(
        TaskStatusHistory(
            task_id=task.id,
            from_status=None,
            to_status=TaskStatus.PENDING,
            comments="Tarefa criada manualmente",
            changed_by=current_user.id,
        )
    )
    await audit.log(
        event_type="task.created",
        actor=current_user,
        entity_type="ComplianceTask",
        entity_id=task.id,
        payload={"title": task.title, "priority": task.priority},
    )
    await db.commit()
    return task_out(task, _steps_visible(current_user))


@router.get("/{task_id}", response_model=TaskOut, summary="Get a task")
async def get_task(task_id: str, current_user: CurrentUser, db: DbSession) -> TaskOut:
    task = await load_task(db, current_user, task_id, allow_admin=True)
    return task_out(task, _steps_visible(current_user))


@router.patch("/{task_id}/status", response_model=TaskOut, summary="Change task status")
async def update_task_status(
    task_id: str,
    body: TaskStatusUpdate,
    current_user: CurrentUser,
    db: DbSession,
    audit: Audit,
) -> TaskOut:
    """Owner moves between pending, in_progress and completed."""
    task = await load_task(db, current_user, task_id)
    await TaskWorkflow(db, audit).change_status(task, body.status, current_user)
    await db.commit()
    return task_out(task, _steps_visible(current_user))


@router.post(
    "/{task_id}/documents",
    response_model=TaskAttachResponse,
    status_code=201,
    summary="Attach evidence files to a task",
)
async def attach_documents(
    task_id: str,
    files: Annotated[list[UploadFile], File(description="One or more evidence files")],
    current_user: CurrentUser,
    db: DbSession,
    audit: Audit,
) -> TaskAttachResponse:
    """Task attachments do not count against the plan's document limit."""
    settings = get_settings()
    task = await load_task(db, current_user, task_id)
    if task.status in LOCKED_STATUSES or task.status == TaskStatus.CANCELLED:
        raise ConflictError(
            ErrorCode.TASK_LOCKED,
            f"Documents cannot be attached while the task is '{task.status}'",
            detail={"task_id": task.id, "status": str(task.status)},
        )
    if not files or len(files) > settings.max_files_per_task_upload:
        raise ValidationError(
            f"Attach between 1 and {settings.max_files_per_task_upload} files",
            detail={"received": len(files)},
        )

    # Every file is validated before any of them is written
    pending: list[PendingUpload] = []
    for upload in files:
        pending.append(await prepare_upload(db, current_user, upload, settings, pending))

    with staged_files(pending, settings.upload_dir) as stored:
        documents = [
            await record_upload(
                db,
                audit,
                current_user,
                item,
                category=task.category,
                description=f"Evidência da tarefa: {task.title}",
                task_id=task.id,
            )
            for item in stored
        ]
        await db.commit()

    _log.info("task_documents_attached", task_id=task.id, count=len(documents))
    return TaskAttachResponse(
        task_id=task.id, documents=[DocumentOut.model_validate(d) for d in documents]
    )


@router.post("/{task_id}/submit", response_model=TaskOut, summary="Submit a task for review")
async def submit_task(
    task_id: str,
    body: TaskSubmitRequest,
    current_user: CurrentUser,
    db: DbSession,
    audit: Audit,
) -> TaskOut:
    task = await load_task(db, current_user, task_id)
    await TaskWorkflow(db, audit).submit(task, current_user, body.comments)
    await db.commit()
    return task_out(task, _steps_visible(current_user))


@router.post(
    "/{task_id}/resubmit", response_model=TaskOut, summary="Resubmit a rejected task"
)
async def resubmit_task(
    task_id: str,
    body: TaskSubmitRequest,
    current_user: CurrentUser,
    db: DbSession,
    audit: Audit,
) -> TaskOut:
    task = await load_task(db, current_user, task_id)
    await TaskWorkflow(db, audit).resubmit(task, current_user, body.comments)
    await db.commit()
    return task_out(task, _steps_visible(current_user))


@router.get(
    "/{task_id}/history",
    response_model=list[TaskHistoryOut],
    summary="Status history of a task, newest first",
)
async def get_task_history(
    task_id: str, current_user: CurrentUser, db: DbSession
) -> list[TaskHistoryOut]:
    task = await load_task(db, current_user, task_id, allow_admin=True)
    return await task_history(db, task.id)


async def task_history(db: AsyncSession, task_id: str) -> list[TaskHistoryOut]:
    result = await db.execute(
        select(TaskStatusHistory)
        .where(TaskStatusHistory.task_id == task_id)
        .order_by(TaskStatusHistory.created_at.desc(), TaskStatusHistory.id)
    )
    return [TaskHistoryOut.model_validate(h) for h in result.scalars().all()]
