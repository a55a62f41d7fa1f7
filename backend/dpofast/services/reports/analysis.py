"""
Compliance analysis shared by the sector-analysis endpoint, the dashboard
and PDF reports.

``collect_snapshot`` reads everything a report needs for one tenant in a
handful of queries; the rest of this module is pure.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dpofast.db.base import ensure_utc, utcnow
from dpofast.db.models.company import CompanyProfile, CompanySector
from dpofast.db.models.questionnaire import QuestionnaireResponse
from dpofast.db.models.task import ComplianceTask, TaskPriority, TaskStatus
from dpofast.db.models.user import SubscriptionPlan, User
from dpofast.services.billing.plans import PlanLimits, effective_plan, limits_for
from dpofast.services.questionnaire.catalog import Catalog
from dpofast.services.questionnaire.scoring import AnswerBreakdown, analyze, overall_score

TOP_PRIORITY_TASKS = 10

_PRIORITY_RANK = {TaskPriority.HIGH: 0, TaskPriority.MEDIUM: 1, TaskPriority.LOW: 2}
_PENDING_STATUSES = frozenset(
    {TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.REJECTED}
)


@dataclass
class SectorAnalysis:
    sector_id: str
    name: str
    score: int
    answered: int
    total: int
    progress: int
    is_complete: bool
    breakdown: AnswerBreakdown
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass
class TaskMetrics:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_category: dict[str, int] = field(default_factory=dict)
    completion_rate: int = 0
    high_priority_pending: int = 0


@dataclass
class ReportSnapshot:
    company_name: str
    generated_at: datetime
    plan: SubscriptionPlan
    limits: PlanLimits
    overall_score: int
    breakdown: AnswerBreakdown
    sectors: list[SectorAnalysis]
    task_metrics: TaskMetrics
    priority_tasks: list[ComplianceTask]


def analyze_sector(
    sector: CompanySector, response: QuestionnaireResponse, catalog: Catalog
) -> SectorAnalysis:
    questions = catalog.questions_for_sector(sector.name)
    findings = analyze(questions, response.answer_map())
    return SectorAnalysis(
        sector_id=sector.id,
        name=sector.name,
        score=findings.score,
        answered=findings.progress.answered,
        total=findings.progress.total,
        progress=findings.progress.percentage,
        is_complete=response.is_complete,
        breakdown=findings.breakdown,
        issues=findings.issues,
        recommendations=catalog.recommendations_for(sector.name),
    )


def task_metrics(tasks: Sequence[ComplianceTask]) -> TaskMetrics:
    """Totals exclude cancelled tasks; completion rate is approved / total."""
    live = [t for t in tasks if t.status != TaskStatus.CANCELLED]
    by_status = Counter(str(t.status) for t in live)
    metrics = TaskMetrics(
        total=len(live),
        by_status=dict(by_status),
        by_category=dict(Counter(t.category for t in live)),
        high_priority_pending=sum(
            1
            for t in live
            if t.priority == TaskPriority.HIGH and t.status in _PENDING_STATUSES
        ),
    )
    if live:
        metrics.completion_rate = round(100 * by_status[TaskStatus.APPROVED] / len(live))
    return metrics


def priority_tasks(
    tasks: Sequence[ComplianceTask], limit: int = TOP_PRIORITY_TASKS
) -> list[ComplianceTask]:
    """Open tasks ordered by priority, then by due date (undated last)."""
    pending = [t for t in tasks if t.status in _PENDING_STATUSES]
    pending.sort(
        key=lambda t: (
            _PRIORITY_RANK.get(t.priority, len(_PRIORITY_RANK)),
            ensure_utc(t.due_date).timestamp() if t.due_date else float("inf"),
        )
    )
    return pending[:limit]


async def load_responses(
    db: AsyncSession, user_id: str, sector_id: str | None = None
) -> list[tuple[CompanySector, QuestionnaireResponse]]:
    """Saved responses of active sectors, in sector creation order."""
    query = (
        select(CompanySector, QuestionnaireResponse)
        .join(QuestionnaireResponse, QuestionnaireResponse.sector_id == CompanySector.id)
        .options(selectinload(QuestionnaireResponse.answers))
        .where(
            CompanySector.user_id == user_id,
            CompanySector.is_active.is_(True),
            QuestionnaireResponse.user_id == user_id,
        )
        .order_by(CompanySector.created_at)
    )
    if sector_id is not None:
        query = query.where(CompanySector.id == sector_id)
    result = await db.execute(query)
    return [(row[0], row[1]) for row in result.all()]


async def sector_analyses(
    db: AsyncSession, user_id: str, catalog: Catalog, sector_id: str | None = None
) -> list[SectorAnalysis]:
    pairs = await load_responses(db, user_id, sector_id)
    return [analyze_sector(sector, response, catalog) for sector, response in pairs]


async def collect_snapshot(
    db: AsyncSession,
    user: User,
    profile: CompanyProfile,
    catalog: Catalog,
    sector_id: str | None = None,
) -> ReportSnapshot:
    sectors = await sector_analyses(db, user.id, catalog, sector_id)

    task_query = select(ComplianceTask).where(ComplianceTask.user_id == user.id)
    if sector_id is not None:
        task_query = task_query.where(ComplianceTask.sector_id == sector_id)
    tasks = list((await db.execute(task_query)).scalars().all())

    totals = AnswerBreakdown()
    for sector in sectors:
        totals.add(sector.breakdown)

    return ReportSnapshot(
        company_name=profile.company_name,
        generated_at=utcnow(),
        plan=effective_plan(user),
        limits=limits_for(user),
        overall_score=overall_score(s.score for s in sectors),
        breakdown=totals,
        sectors=sectors,
        task_metrics=task_metrics(tasks),
        priority_tasks=priority_tasks(tasks),
    )
