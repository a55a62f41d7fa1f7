"""Unit tests for dpofast.services.reports.pdf_builder."""
import io
from datetime import UTC, datetime, timedelta

import pdfplumber

from dpofast.db.models.task import ComplianceTask, TaskPriority, TaskStatus
from dpofast.db.models.user import SubscriptionPlan
from dpofast.services.billing.plans import PLAN_LIMITS
from dpofast.services.questionnaire.scoring import AnswerBreakdown
from dpofast.services.reports.analysis import (
    ReportSnapshot,
    SectorAnalysis,
    TaskMetrics,
    priority_tasks,
    task_metrics,
)
from dpofast.services.reports.pdf_builder import render_report, write_report

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _task(title: str, status: str, priority: str, due_in: int | None = None) -> ComplianceTask:
    return ComplianceTask(
        user_id="u1",
        title=title,
        description="",
        steps=["Passo um", "Passo dois"],
        category="documentation",
        status=status,
        priority=priority,
        due_date=NOW + timedelta(days=due_in) if due_in is not None else None,
    )


def _snapshot(plan: SubscriptionPlan, tasks: list[ComplianceTask]) -> ReportSnapshot:
    sector = SectorAnalysis(
        sector_id="s1",
        name="Marketing & Vendas <B2B>",
        score=45,
        answered=10,
        total=13,
        progress=77,
        is_complete=False,
        breakdown=AnswerBreakdown(yes=3, partial=3, no=4),
        issues=["Política de Privacidade"],
        recommendations=["Revisar consentimentos de campanhas"],
    )
    return ReportSnapshot(
        company_name="Acme & Filhos",
        generated_at=NOW,
        plan=plan,
        limits=PLAN_LIMITS[plan],
        overall_score=45,
        breakdown=sector.breakdown,
        sectors=[sector],
        task_metrics=task_metrics(tasks),
        priority_tasks=priority_tasks(tasks),
    )


def _text(data: bytes) -> str:
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        return "\n".join(page.extract_text() or "" for page in pdf.pages)


# ─── Analysis helpers ─────────────────────────────────────────────────────────

def test_task_metrics_ignore_cancelled_tasks():
    tasks = [
        _task("a", TaskStatus.APPROVED, TaskPriority.HIGH),
        _task("b", TaskStatus.PENDING, TaskPriority.HIGH),
        _task("c", TaskStatus.CANCELLED, TaskPriority.HIGH),
        _task("d", TaskStatus.IN_REVIEW, TaskPriority.LOW),
    ]
    metrics = task_metrics(tasks)
    assert metrics.total == 3
    assert metrics.completion_rate == 33
    assert metrics.high_priority_pending == 1
    assert "cancelled" not in metrics.by_status


def test_priority_tasks_order_by_priority_then_due_date():
    tasks = [
        _task("low", TaskStatus.PENDING, TaskPriority.LOW, 1),
        _task("high-late", TaskStatus.PENDING, TaskPriority.HIGH, 30),
        _task("high-undated", TaskStatus.REJECTED, TaskPriority.HIGH),
        _task("high-soon", TaskStatus.IN_PROGRESS, TaskPriority.HIGH, 5),
        _task("done", TaskStatus.APPROVED, TaskPriority.HIGH, 1),
    ]
    assert [t.title for t in priority_tasks(tasks)] == [
        "high-soon",
        "high-late",
        "high-undated",
        "low",
    ]


def test_empty_metrics():
    assert task_metrics([]) == TaskMetrics()


# ─── Rendering ────────────────────────────────────────────────────────────────

def test_render_produces_pdf_with_escaped_text():
    tasks = [_task("[Marketing] Criar política", TaskStatus.PENDING, TaskPriority.HIGH, 10)]
    data = render_report(_snapshot(SubscriptionPlan.PRO, tasks), "Relatório Completo")

    assert data.startswith(b"%PDF")
    text = _text(data)
    assert "Acme & Filhos" in text
    assert "Marketing & Vendas <B2B>" in text
    assert "45%" in text
    assert "Passo um" in text
    assert "Revisar consentimentos de campanhas" in text


def test_free_plan_omits_steps_and_recommendations():
    tasks = [_task("[Marketing] Criar política", TaskStatus.PENDING, TaskPriority.HIGH, 10)]
    text = _text(render_report(_snapshot(SubscriptionPlan.FREE, tasks), "Relatório"))

    assert "Passo um" not in text
    assert "Revisar consentimentos de campanhas" not in text
    assert "upgrade" in text


def test_write_report_returns_size(tmp_path):
    path = tmp_path / "report.pdf"
    size = write_report(_snapshot(SubscriptionPlan.BASIC, []), "Relatório", path)
    assert size == path.stat().st_size > 0
