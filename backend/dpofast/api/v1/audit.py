"""Audit log API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query
from sqlalchemy import func, select

from dpofast.api.deps import AdminUser, DbSession
from dpofast.db.models.audit import AuditEvent
from dpofast.schemas.audit import AuditEventOut, AuditListResponse, ChainVerificationResult
from dpofast.services.audit.logger import AuditLogger

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=AuditListResponse, summary="List audit events")
async def list_audit_events(
    admin: AdminUser,
    db: DbSession,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
    event_type: str | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    actor_id: str | None = Query(default=None),
) -> AuditListResponse:
    """Newest first, with optional filters."""
    query = select(AuditEvent)
    if event_type:
        query = query.where(AuditEvent.event_type == event_type)
    if entity_type:
        query = query.where(AuditEvent.entity_type == entity_type)
    if entity_id:
        query = query.where(AuditEvent.entity_id == entity_id)
    if actor_id:
        query = query.where(AuditEvent.actor_id == actor_id)

    count = await db.execute(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(AuditEvent.sequence_no.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return AuditListResponse(
        items=[AuditEventOut.model_validate(e) for e in result.scalars().all()],
        total=count.scalar_one(),
        page=page,
        page_size=page_size,
    )


@router.get(
    "/verify",
    response_model=ChainVerificationResult,
    summary="Verify audit hash chain integrity",
)
async def verify_chain(admin: AdminUser, db: DbSession) -> ChainVerificationResult:
    """
    Recompute every event hash in sequence order.

    Returns whether the chain is intact and, if not, the ID of the first
    broken link.
    """
    count_result = await db.execute(select(func.count()).select_from(AuditEvent))
    total = count_result.scalar_one()

    is_valid, broken_at = await AuditLogger.verify_chain(db)

    return ChainVerificationResult(
        is_valid=is_valid,
        total_events=total,
        first_broken_at=broken_at,
        message="Chain is intact." if is_valid else f"Chain broken at event {broken_at}.",
    )
