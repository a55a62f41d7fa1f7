"""
Administrator (DPO) endpoints.

Subscriber oversight, review of submitted tasks and uploaded documents,
report statistics and management of administrator accounts.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dpofast.api.deps import AdminUser, Audit, DbSession
from dpofast.api.v1.auth import ensure_identity_available
from dpofast.api.v1.documents import load_document
from dpofast.api.v1.tasks import load_task, task_history, task_out
from dpofast.core.errors import ConflictError, ErrorCode, NotFoundError, ValidationError
from dpofast.core.security import hash_password
from dpofast.db.base import utcnow
from dpofast.db.models.company import CompanyProfile, CompanySector
from dpofast.db.models.document import Document, DocumentStatus
from dpofast.db.models.notification import NotificationType
from dpofast.db.models.report import ComplianceReport
from dpofast.db.models.task import ComplianceTask, TaskStatus
from dpofast.db.models.user import Role, RoleEnum, SubscriptionStatus, User
from dpofast.schemas.admin import (
    AdminCreateRequest,
    AdminOut,
    AdminStats,
    DocumentRejectRequest,
    ReportStats,
    SubscriberDetails,
    SubscriberOut,
    SubscriptionUpdate,
    TaskReviewOut,
)
from dpofast.schemas.document import DocumentOut, DocumentReviewRequest
from dpofast.schemas.report import ReportOut
from dpofast.schemas.task import TaskOut, TaskReviewRequest
from dpofast.services.notifications.notifier import notify
from dpofast.services.questionnaire.scoring import score_band
from dpofast.services.tasks.workflow import TaskWorkflow

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def _count(db: AsyncSession, query) -> int:
    return (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()


def _subscribers_query():
    return (
        select(User)
        .join(Role, Role.id == User.role_id)
        .where(Role.name == RoleEnum.USER, User.deleted_at.is_(None))
    )


async def _company_names(db: AsyncSession, user_ids: list[str]) -> dict[str, str]:
    if not user_ids:
        return {}
    result = await db.execute(
        select(CompanyProfile.user_id, CompanyProfile.company_name).where(
            CompanyProfile.user_id.in_(user_ids)
        )
    )
    return dict(result.all())


def _subscriber_out(user: User, company_name: str | None) -> SubscriberOut:
    return SubscriberOut(
        id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        company=user.company,
        company_name=company_name,
        subscription_plan=user.subscription_plan,
        subscription_status=user.subscription_status,
        is_active=user.is_active,
        created_at=user.created_at,
    )


async def _load_subscriber(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(_subscribers_query().where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", user_id)
    return user


async def _load_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(
        select(User).options(selectinload(User.role)).where(User.id == user_id)
    )
    user = result.scalar_one_or_none()
    if user is None or user.is_deleted:
        raise NotFoundError("User", user_id)
    return user


async def _role(db: AsyncSession, name: RoleEnum) -> Role:
    result = await db.execute(select(Role).where(Role.name == name))
    return result.scalar_one()


# ── Overview ───────────────────────────────────────────────────────────── #


@router.get("/stats", response_model=AdminStats, summary="Platform-wide counters")
async def get_stats(admin: AdminUser, db: DbSession) -> AdminStats:
    live_docs = select(Document).where(Document.deleted_at.is_(None))
    return AdminStats(
        total_subscribers=await _count(db, _subscribers_query()),
        active_subscriptions=await _count(
            db,
            _subscribers_query().where(User.subscription_status == SubscriptionStatus.ACTIVE),
        ),
        pending_documents=await _count(
            db, live_docs.where(Document.status == DocumentStatus.PENDING)
        ),
        approved_documents=await _count(
            db, live_docs.where(Document.status == DocumentStatus.VALID)
        ),
        total_reports=await _count(db, select(ComplianceReport)),
        tasks_in_review=await _count(
            db, select(ComplianceTask).where(ComplianceTask.status == TaskStatus.IN_REVIEW)
        ),
    )


# ── Subscribers ────────────────────────────────────────────────────────── #


@router.get("/subscribers", response_model=list[SubscriberOut], summary="List subscribers")
async def list_subscribers(
    admin: AdminUser,
    db: DbSession,
    plan: str | None = Query(default=None),
    status: str | None = Query(default=None),
) -> list[SubscriberOut]:
    query = _subscribers_query()
    if plan:
        query = query.where(User.subscription_plan == plan)
    if status:
        query = query.where(User.subscription_status == status)
    users = (await db.execute(query.order_by(User.created_at.desc()))).scalars().all()
    names = await _company_names(db, [u.id for u in users])
    return [_subscriber_out(u, names.get(u.id)) for u in users]


@router.get(
    "/subscribers/{user_id}",
    response_model=SubscriberDetails,
    summary="Subscriber details with usage counts",
)
async def get_subscriber(user_id: str, admin: AdminUser, db: DbSession) -> SubscriberDetails:
    user = await _load_subscriber(db, user_id)
    names = await _company_names(db, [user.id])
    tasks = select(ComplianceTask).where(
        ComplianceTask.user_id == user.id, ComplianceTask.status != TaskStatus.CANCELLED
    )
    return SubscriberDetails(
        **_subscriber_out(user, names.get(user.id)).model_dump(),
        sectors=await _count(
            db,
            select(CompanySector).where(
                CompanySector.user_id == user.id, CompanySector.is_active.is_(True)
            ),
        ),
        documents=await _count(
            db,
            select(Document).where(Document.user_id == user.id, Document.deleted_at.is_(None)),
        ),
        reports=await _count(
            db, select(ComplianceReport).where(ComplianceReport.user_id == user.id)
        ),
        tasks=await _count(db, tasks),
        tasks_in_review=await _count(
            db, tasks.where(ComplianceTask.status == TaskStatus.IN_REVIEW)
        ),
    )


@router.put(
    "/subscribers/{user_id}/subscription",
    response_model=SubscriberOut,
    summary="Override a subscriber's plan or status",
)
async def update_subscription(
    user_id: str, body: SubscriptionUpdate, admin: AdminUser, db: DbSession, audit: Audit
) -> SubscriberOut:
    if body.subscription_plan is None and body.subscription_status is None:
        raise ValidationError("Provide a plan, a status or both")

    user = await _load_subscriber(db, user_id)
    before = {"plan": user.subscription_plan, "status": user.subscription_status}
    if body.subscription_plan is not None:
        user.subscription_plan = body.subscription_plan
    if body.subscription_status is not None:
        user.subscription_status = body.subscription_status

    await notify(
        db,
        user.id,
        "Assinatura atualizada",
        f"Seu plano agora é {user.subscription_plan} ({user.subscription_status}).",
        NotificationType.SUBSCRIPTION_UPDATED,
    )
    await audit.log(
        event_type="admin.subscription_updated",
        actor=admin,
        entity_type="User",
        entity_id=user.id,
        payload={
            "before": before,
            "after": {"plan": user.subscription_plan, "status": user.subscription_status},
        },
    )
    await db.commit()
    names = await _company_names(db, [user.id])
    return _subscriber_out(user, names.get(user.id))


# ── Task review ────────────────────────────────────────────────────────── #


@router.get("/tasks/pending", response_model=list[TaskOut], summary="Tasks awaiting review")
async def pending_tasks(admin: AdminUser, db: DbSession) -> list[TaskOut]:
    """Oldest submission first."""
    result = await db.execute(
        select(ComplianceTask)
        .where(ComplianceTask.status == TaskStatus.IN_REVIEW)
        .order_by(ComplianceTask.submitted_at, ComplianceTask.created_at)
    )
    return [task_out(t) for t in result.scalars().all()]


@router.get(
    "/tasks/{task_id}/review",
    response_model=TaskReviewOut,
    summary="Everything needed to review a task",
)
async def get_task_review(task_id: str, admin: AdminUser, db: DbSession) -> TaskReviewOut:
    task = await load_task(db, admin, task_id, allow_admin=True)
    owner = await _load_user(db, task.user_id)
    names = await _company_names(db, [owner.id])
    docs = await db.execute(
        select(Document)
        .where(Document.task_id == task.id, Document.deleted_at.is_(None))
        .order_by(Document.created_at)
    )
    return TaskReviewOut(
        task=task_out(task),
        owner=_subscriber_out(owner, names.get(owner.id)),
        documents=[DocumentOut.model_validate(d) for d in docs.scalars().all()],
        history=await task_history(db, task.id),
    )


@router.post("/tasks/{task_id}/approve", response_model=TaskOut, summary="Approve a task")
async def approve_task(
    task_id: str, body: TaskReviewRequest, admin: AdminUser, db: DbSession, audit: Audit
) -> TaskOut:
    task = await load_task(db, admin, task_id, allow_admin=True)
    await TaskWorkflow(db, audit).approve(task, admin, body.comments)
    await db.commit()
    return task_out(task)


@router.post("/tasks/{task_id}/reject", response_model=TaskOut, summary="Reject a task")
async def reject_task(
    task_id: str, body: TaskReviewRequest, admin: AdminUser, db: DbSession, audit: Audit
) -> TaskOut:
    task = await load_task(db, admin, task_id, allow_admin=True)
    await TaskWorkflow(db, audit).reject(task, admin, body.comments)
    await db.commit()
    return task_out(task)


# ── Document review ────────────────────────────────────────────────────── #


@router.get("/documents", response_model=list[DocumentOut], summary="All tenants' documents")
async def list_all_documents(
    admin: AdminUser,
    db: DbSession,
    status: DocumentStatus | None = Query(default=None),  # noqa: B008
    user_id: str | None = Query(default=None),
) -> list[DocumentOut]:
    query = select(Document).where(Document.deleted_at.is_(None))
    if status:
        query = query.where(Document.status == status)
    if user_id:
        query = query.where(Document.user_id == user_id)
    result = await db.execute(query.order_by(Document.created_at.desc()))
    return [DocumentOut.model_validate(d) for d in result.scalars().all()]


@router.get(
    "/documents/pending", response_model=list[DocumentOut], summary="Documents awaiting review"
)
async def pending_documents(admin: AdminUser, db: DbSession) -> list[DocumentOut]:
    result = await db.execute(
        select(Document)
        .where(Document.deleted_at.is_(None), Document.status == DocumentStatus.PENDING)
        .order_by(Document.created_at)
    )
    return [DocumentOut.model_validate(d) for d in result.scalars().all()]


async def _review_document(
    db: AsyncSession,
    admin: User,
    document_id: str,
    status: DocumentStatus,
    notes: str | None,
) -> Document:
    doc = await load_document(db, admin, document_id, allow_admin=True)
    if doc.status != DocumentStatus.PENDING:
        raise ConflictError(
            ErrorCode.DOC_ALREADY_REVIEWED,
            f"Document was already reviewed ({doc.status})",
            detail={"document_id": doc.id, "status": str(doc.status)},
        )
    doc.status = status
    doc.review_notes = notes
    doc.reviewed_by = admin.id
    doc.reviewed_at = utcnow()
    return doc


@router.post(
    "/documents/{document_id}/approve", response_model=DocumentOut, summary="Approve a document"
)
async def approve_document(
    document_id: str,
    body: DocumentReviewRequest,
    admin: AdminUser,
    db: DbSession,
    audit: Audit,
) -> DocumentOut:
    doc = await _review_document(db, admin, document_id, DocumentStatus.VALID, body.notes)
    await notify(
        db,
        doc.user_id,
        "Documento aprovado",
        f'Seu documento "{doc.name}" foi validado pelo DPO.',
        NotificationType.DOCUMENT_APPROVED,
        related_task_id=doc.task_id,
    )
    await audit.log(
        event_type="document.approved",
        actor=admin,
        entity_type="Document",
        entity_id=doc.id,
        payload={"notes": body.notes},
    )
    await db.commit()
    return DocumentOut.model_validate(doc)


@router.post(
    "/documents/{document_id}/reject", response_model=DocumentOut, summary="Reject a document"
)
async def reject_document(
    document_id: str,
    body: DocumentRejectRequest,
    admin: AdminUser,
    db: DbSession,
    audit: Audit,
) -> DocumentOut:
    doc = await _review_document(db, admin, document_id, DocumentStatus.REJECTED, body.reason)
    await notify(
        db,
        doc.user_id,
        "Documento rejeitado",
        f'Seu documento "{doc.name}" foi rejeitado. Motivo: {body.reason}',
        NotificationType.DOCUMENT_REJECTED,
        related_task_id=doc.task_id,
    )
    await audit.log(
        event_type="document.rejected",
        actor=admin,
        entity_type="Document",
        entity_id=doc.id,
        payload={"reason": body.reason},
    )
    await db.commit()
    return DocumentOut.model_validate(doc)


# ── Reports ────────────────────────────────────────────────────────────── #


@router.get("/reports", response_model=list[ReportOut], summary="All generated reports")
async def list_all_reports(
    admin: AdminUser, db: DbSession, user_id: str | None = Query(default=None)
) -> list[ReportOut]:
    query = select(ComplianceReport)
    if user_id:
        query = query.where(ComplianceReport.user_id == user_id)
    result = await db.execute(query.order_by(ComplianceReport.created_at.desc()))
    return [ReportOut.model_validate(r) for r in result.scalars().all()]


@router.get("/reports/stats", response_model=ReportStats, summary="Report score distribution")
async def report_stats(admin: AdminUser, db: DbSession) -> ReportStats:
    result = await db.execute(
        select(ComplianceReport.compliance_score, ComplianceReport.report_type)
    )
    rows = result.all()
    bands = {"high": 0, "medium": 0, "low": 0}
    by_type: dict[str, int] = {}
    for score, report_type in rows:
        bands[score_band(score)] += 1
        by_type[report_type] = by_type.get(report_type, 0) + 1
    average = round(sum(score for score, _ in rows) / len(rows)) if rows else 0
    return ReportStats(total=len(rows), average_score=average, by_type=by_type, **bands)


# ── Administrators ─────────────────────────────────────────────────────── #


@router.get("/admins", response_model=list[AdminOut], summary="List administrators")
async def list_admins(admin: AdminUser, db: DbSession) -> list[AdminOut]:
    result = await db.execute(
        select(User)
        .join(Role, Role.id == User.role_id)
        .options(selectinload(User.role))
        .where(Role.name == RoleEnum.ADMIN, User.deleted_at.is_(None))
        .order_by(User.created_at)
    )
    return [AdminOut.from_user(u) for u in result.scalars().all()]


@router.post(
    "/admins", response_model=AdminOut, status_code=201, summary="Create an administrator"
)
async def create_admin(
    body: AdminCreateRequest, admin: AdminUser, db: DbSession, audit: Audit
) -> AdminOut:
    email = body.email.lower()
    await ensure_identity_available(db, body.username, email)
    role = await _role(db, RoleEnum.ADMIN)
    user = User(
        username=body.username,
        email=email,
        password_hash=hash_password(body.password),
        first_name=body.first_name,
        last_name=body.last_name,
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    await audit.log(
        event_type="admin.created",
        actor=admin,
        entity_type="User",
        entity_id=user.id,
        payload={"username": user.username},
    )
    await db.commit()
    return AdminOut.from_user(user)


async def _set_role(
    db: AsyncSession, admin: User, user_id: str, target: RoleEnum
) -> User:
    # The acting admin keeps its role, so at least one admin always remains
    if user_id == admin.id:
        raise ValidationError(
            "You cannot change your own role", code=ErrorCode.ADMIN_SELF_ACTION
        )
    user = await _load_user(db, user_id)
    if user.role.name == target:
        raise ConflictError(
            ErrorCode.ADMIN_ROLE_UNCHANGED,
            f"User already has role '{target}'",
            detail={"user_id": user.id, "role": str(target)},
        )
    role = await _role(db, target)
    user.role = role
    return user


@router.post("/admins/{user_id}/promote", response_model=AdminOut, summary="Grant admin role")
async def promote_user(
    user_id: str, admin: AdminUser, db: DbSession, audit: Audit
) -> AdminOut:
    user = await _set_role(db, admin, user_id, RoleEnum.ADMIN)
    await audit.log(
        event_type="admin.promoted", actor=admin, entity_type="User", entity_id=user.id
    )
    await db.commit()
    return AdminOut.from_user(user)


@router.post("/admins/{user_id}/demote", response_model=AdminOut, summary="Revoke admin role")
async def demote_user(
    user_id: str, admin: AdminUser, db: DbSession, audit: Audit
) -> AdminOut:
    user = await _set_role(db, admin, user_id, RoleEnum.USER)
    await audit.log(
        event_type="admin.demoted", actor=admin, entity_type="User", entity_id=user.id
    )
    await db.commit()
    return AdminOut.from_user(user)


@router.delete("/users/{user_id}", status_code=204, summary="Deactivate a user")
async def delete_user(user_id: str, admin: AdminUser, db: DbSession, audit: Audit) -> None:
    if user_id == admin.id:
        raise ValidationError(
            "You cannot delete your own account", code=ErrorCode.ADMIN_SELF_ACTION
        )
    user = await _load_user(db, user_id)
    user.soft_delete()
    user.is_active = False
    await audit.log(
        event_type="user.deactivated",
        actor=admin,
        entity_type="User",
        entity_id=user.id,
    )
    await db.commit()
    _log.info("user_deactivated", user_id=user.id, by=admin.id)
