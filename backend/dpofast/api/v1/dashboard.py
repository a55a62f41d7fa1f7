"""Tenant dashboard endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import func, select

from dpofast.api.deps import CatalogDep, CurrentUser, DbSession, get_company_profile
from dpofast.db.models.company import CompanyProfile, CompanySector
from dpofast.db.models.document import Document, DocumentStatus
from dpofast.db.models.notification import Notification
from dpofast.db.models.report import ComplianceReport
from dpofast.db.models.task import ComplianceTask, TaskStatus
from dpofast.schemas.billing import DashboardOut, DashboardSectorOut, PlanLimitsOut
from dpofast.services.billing.plans import effective_plan, limits_for, suggested_plan
from dpofast.services.questionnaire.scoring import overall_score
from dpofast.services.reports.analysis import sector_analyses

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardOut, summary="Compliance overview for the caller")
async def get_dashboard(
    current_user: CurrentUser,
    profile: Annotated[CompanyProfile | None, Depends(get_company_profile)],
    catalog: CatalogDep,
    db: DbSession,
) -> DashboardOut:
    """
    Works before onboarding too: sectors and scores are then simply empty.

    Sectors without a saved questionnaire are listed with zero progress and
    no score.
    """
    sectors_result = await db.execute(
        select(CompanySector)
        .where(CompanySector.user_id == current_user.id, CompanySector.is_active.is_(True))
        .order_by(CompanySector.created_at)
    )
    sectors = sectors_result.scalars().all()
    analyses = {a.sector_id: a for a in await sector_analyses(db, current_user.id, catalog)}

    sector_rows = []
    for sector in sectors:
        analysis = analyses.get(sector.id)
        sector_rows.append(
            DashboardSectorOut(
                sector_id=sector.id,
                name=sector.name,
                progress=analysis.progress if analysis else 0,
                score=analysis.score if analysis else None,
                is_complete=analysis.is_complete if analysis else False,
            )
        )

    status_rows = await db.execute(
        select(ComplianceTask.status, func.count())
        .where(ComplianceTask.user_id == current_user.id)
        .group_by(ComplianceTask.status)
    )
    tasks_by_status = {str(status): count for status, count in status_rows.all()}
    pending_tasks = sum(
        tasks_by_status.get(s, 0)
        for s in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.REJECTED)
    )

    doc_rows = await db.execute(
        select(Document.status, func.count())
        .where(Document.user_id == current_user.id, Document.deleted_at.is_(None))
        .group_by(Document.status)
    )
    docs_by_status = {str(status): count for status, count in doc_rows.all()}

    last_report = await db.execute(
        select(func.max(ComplianceReport.created_at)).where(
            ComplianceReport.user_id == current_user.id
        )
    )
    unread = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == current_user.id, Notification.is_read.is_(False))
    )

    plan = effective_plan(current_user)
    return DashboardOut(
        onboarding_completed=profile is not None and profile.is_completed,
        company_name=profile.company_name if profile else None,
        overall_score=overall_score(a.score for a in analyses.values()),
        sectors=sector_rows,
        pending_tasks=pending_tasks,
        tasks_by_status=tasks_by_status,
        documents_total=sum(docs_by_status.values()),
        documents_valid=docs_by_status.get(DocumentStatus.VALID, 0),
        documents_pending=docs_by_status.get(DocumentStatus.PENDING, 0),
        last_report_at=last_report.scalar_one_or_none(),
        plan=plan,
        limits=PlanLimitsOut(**limits_for(current_user).as_dict()),
        suggested_plan=suggested_plan(plan, profile, len(sectors)),
        unread_notifications=unread.scalar_one(),
    )
