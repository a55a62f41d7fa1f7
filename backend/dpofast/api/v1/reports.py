"""Compliance analysis and PDF report API endpoints."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from dpofast.api.deps import Audit, CatalogDep, CurrentUser, DbSession, OnboardedProfile, is_admin
from dpofast.api.v1.sectors import load_sector
from dpofast.config.settings import get_settings
from dpofast.core.errors import ErrorCode, NotFoundError, ValidationError
from dpofast.core.metrics import REPORTS_GENERATED
from dpofast.db.models.company import CompanyProfile, CompanySector
from dpofast.db.models.report import ComplianceReport, ReportStatus, ReportType
from dpofast.db.models.user import User
from dpofast.schemas.report import (
    AnswerBreakdownOut,
    ReportOut,
    SectorAnalysisOut,
    SectorAnalysisResponse,
)
from dpofast.services.audit.logger import AuditLogger
from dpofast.services.billing.plans import enforce_report_limit
from dpofast.services.questionnaire.catalog import Catalog
from dpofast.services.questionnaire.scoring import overall_score
from dpofast.services.reports.analysis import SectorAnalysis, collect_snapshot, sector_analyses
from dpofast.services.reports.pdf_builder import write_report
from dpofast.services.storage.uploads import remove_stored_file, resolve_stored_path

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


def _analysis_out(sector: SectorAnalysis) -> SectorAnalysisOut:
    return SectorAnalysisOut(
        sector_id=sector.sector_id,
        name=sector.name,
        score=sector.score,
        answered=sector.answered,
        total=sector.total,
        progress=sector.progress,
        is_complete=sector.is_complete,
        breakdown=AnswerBreakdownOut(
            yes=sector.breakdown.yes, partial=sector.breakdown.partial, no=sector.breakdown.no
        ),
        issues=sector.issues,
        recommendations=sector.recommendations,
    )


async def _load_report(db: AsyncSession, user: User, report_id: str) -> ComplianceReport:
    report = await db.get(ComplianceReport, report_id)
    if report is None or (report.user_id != user.id and not is_admin(user)):
        raise NotFoundError("ComplianceReport", report_id, code=ErrorCode.REPORT_NOT_FOUND)
    return report


async def _generate(
    db: AsyncSession,
    audit: AuditLogger,
    user: User,
    profile: CompanyProfile,
    catalog: Catalog,
    report_type: ReportType,
    sector: CompanySector | None = None,
) -> ComplianceReport:
    """Render, store and commit a report; the PDF is removed if recording it fails."""
    await enforce_report_limit(db, user)
    snapshot = await collect_snapshot(
        db, user, profile, catalog, sector_id=sector.id if sector else None
    )
    if not snapshot.sectors:
        raise ValidationError(
            "Answer at least one sector questionnaire before generating a report",
            code=ErrorCode.REPORT_NO_DATA,
        )

    if sector is None:
        title = f"Relatório de Conformidade LGPD - {profile.company_name}"
    else:
        title = f"Análise Setorial LGPD - {sector.name}"

    report_id = str(uuid.uuid4())
    filename = f"{report_id}.pdf"
    settings = get_settings()
    try:
        size = await run_in_threadpool(
            write_report, snapshot, title, settings.report_dir / filename
        )
        report = ComplianceReport(
            id=report_id,
            user_id=user.id,
            sector_id=sector.id if sector else None,
            title=title,
            report_type=report_type,
            compliance_score=snapshot.overall_score,
            filename=filename,
            file_size_bytes=size,
            status=ReportStatus.GENERATED,
        )
        db.add(report)
        await db.flush()

        await audit.log(
            event_type="report.generated",
            actor=user,
            entity_type="ComplianceReport",
            entity_id=report.id,
            payload={"report_type": report_type, "score": report.compliance_score},
        )
        await db.commit()
    except Exception:
        remove_stored_file(settings.report_dir, filename)
        raise

    REPORTS_GENERATED.labels(report_type=str(report_type)).inc()
    _log.info("report_generated", report_id=report.id, report_type=str(report_type))
    return report


@router.get(
    "/sector-analysis",
    response_model=SectorAnalysisResponse,
    summary="Per-sector compliance analysis",
)
async def get_sector_analysis(
    current_user: CurrentUser, _profile: OnboardedProfile, catalog: CatalogDep, db: DbSession
) -> SectorAnalysisResponse:
    sectors = await sector_analyses(db, current_user.id, catalog)
    return SectorAnalysisResponse(
        overall_score=overall_score(s.score for s in sectors),
        sectors=[_analysis_out(s) for s in sectors],
    )


@router.post(
    "/summary",
    response_model=ReportOut,
    status_code=201,
    summary="Generate the company-wide compliance report",
)
async def generate_summary_report(
    current_user: CurrentUser,
    profile: OnboardedProfile,
    catalog: CatalogDep,
    db: DbSession,
    audit: Audit,
) -> ReportOut:
    report = await _generate(
        db, audit, current_user, profile, catalog, ReportType.COMPLIANCE_SUMMARY
    )
    return ReportOut.model_validate(report)


@router.post(
    "/sectors/{sector_id}",
    response_model=ReportOut,
    status_code=201,
    summary="Generate a single-sector report",
)
async def generate_sector_report(
    sector_id: str,
    current_user: CurrentUser,
    profile: OnboardedProfile,
    catalog: CatalogDep,
    db: DbSession,
    audit: Audit,
) -> ReportOut:
    sector = await load_sector(db, current_user, sector_id)
    report = await _generate(
        db, audit, current_user, profile, catalog, ReportType.SECTOR_ANALYSIS, sector
    )
    return ReportOut.model_validate(report)


@router.get("", response_model=list[ReportOut], summary="List own reports")
async def list_reports(current_user: CurrentUser, db: DbSession) -> list[ReportOut]:
    result = await db.execute(
        select(ComplianceReport)
        .where(ComplianceReport.user_id == current_user.id)
        .order_by(ComplianceReport.created_at.desc())
    )
    return [ReportOut.model_validate(r) for r in result.scalars().all()]


@router.get("/{report_id}/download", summary="Download a report PDF")
async def download_report(
    report_id: str, current_user: CurrentUser, db: DbSession, audit: Audit
) -> FileResponse:
    report = await _load_report(db, current_user, report_id)
    try:
        path = resolve_stored_path(get_settings().report_dir, report.filename)
    except NotFoundError as exc:
        raise NotFoundError(
            "Report file", report.id, code=ErrorCode.REPORT_FILE_MISSING
        ) from exc

    await audit.log(
        event_type="report.downloaded",
        actor=current_user,
        entity_type="ComplianceReport",
        entity_id=report.id,
    )
    await db.commit()
    return FileResponse(
        path=str(path),
        media_type="application/pdf",
        filename=f"dpofast_{report.report_type}_{report.id[:8]}.pdf",
    )


@router.delete("/{report_id}", status_code=204, summary="Delete a report")
async def delete_report(
    report_id: str, current_user: CurrentUser, db: DbSession, audit: Audit
) -> None:
    report = await _load_report(db, current_user, report_id)
    await audit.log(
        event_type="report.deleted",
        actor=current_user,
        entity_type="ComplianceReport",
        entity_id=report.id,
        payload={"title": report.title},
    )
    await db.delete(report)
    await db.commit()
    remove_stored_file(get_settings().report_dir, report.filename)
