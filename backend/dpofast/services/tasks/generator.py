"""
Compliance task generation from a completed sector questionnaire.

``draft_tasks`` is pure: it turns answers into TaskDraft values. The
TaskGenerator persists drafts, skipping any that duplicate an open
auto-generated task for the same sector and question.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.core.metrics import TASKS_GENERATED
from dpofast.db.base import utcnow
from dpofast.db.models.company import CompanySector
from dpofast.db.models.task import (
    OPEN_TASK_STATUSES,
    ComplianceTask,
    TaskPriority,
    TaskSeverity,
    TaskStatus,
)
from dpofast.db.models.user import User
from dpofast.services.questionnaire.catalog import Catalog, Question
from dpofast.services.questionnaire.scoring import AnswerClass, classify_answer
from dpofast.services.tasks.workflow import TaskWorkflow

_log = structlog.get_logger(__name__)

_DUE_DAYS = {AnswerClass.NO: 15, AnswerClass.PARTIAL: 30}
_EVIDENCE_DUE_DAYS = 20
_SEVERITY_LADDER = [
    TaskSeverity.LOW,
    TaskSeverity.MEDIUM,
    TaskSeverity.HIGH,
    TaskSeverity.CRITICAL,
]
_EVIDENCE_STEPS = (
    "Localize a versão mais atual do documento",
    "Anexe o arquivo a esta tarefa",
    "Envie a tarefa para revisão do DPO",
)
_EVIDENCE_TITLE = "Anexar documento:"


@dataclass
class TaskDraft:
    question_id: int
    title: str
    description: str
    priority: TaskPriority
    severity: TaskSeverity
    category: str
    lgpd_requirement: str
    due_date: datetime
    steps: list[str] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return task_kind(self.title)


@dataclass
class GenerationResult:
    created: list[ComplianceTask] = field(default_factory=list)
    cancelled: int = 0
    skipped: int = 0


def task_kind(title: str) -> str:
    """Classify a generated title as an evidence or a remediation task."""
    return "evidence" if _EVIDENCE_TITLE in title else "remediation"


def escalate(severity: str) -> TaskSeverity:
    """One step up the severity ladder, saturating at critical."""
    index = _SEVERITY_LADDER.index(TaskSeverity(severity))
    return _SEVERITY_LADDER[min(index + 1, len(_SEVERITY_LADDER) - 1)]


def _shorten(text: str, limit: int = 50) -> str:
    return f"{text[:limit]}..." if len(text) > limit else text


def _requirement(question: Question, sector_name: str) -> str:
    if question.lgpd_article:
        return question.lgpd_article
    if question.sector_key != "base":
        return f"Adequação setorial - {sector_name}"
    return "Adequação geral"


def _remediation(
    question: Question, klass: AnswerClass, sector_name: str, catalog: Catalog, now: datetime
) -> TaskDraft:
    template = catalog.template(question.task_template)
    urgent = klass is AnswerClass.NO
    if template is not None:
        title = template.title
        body = template.description
        steps = list(template.steps)
        category = question.category or template.category
    else:
        title = f"{'Adequação' if urgent else 'Melhorar'}: {_shorten(question.text)}"
        body = question.description or question.text
        steps = []
        category = question.category or catalog.category_for(sector_name)

    return TaskDraft(
        question_id=question.id,
        title=f"[{sector_name}] {title}",
        description=f"{'URGENTE' if urgent else 'MELHORIA'} - {body}. Setor específico: {sector_name}",
        priority=TaskPriority.HIGH if urgent else TaskPriority.MEDIUM,
        severity=escalate(question.severity) if urgent else TaskSeverity(question.severity),
        category=category,
        lgpd_requirement=_requirement(question, sector_name),
        due_date=now + timedelta(days=_DUE_DAYS[klass]),
        steps=steps,
    )


def _evidence(question: Question, sector_name: str, now: datetime) -> TaskDraft:
    return TaskDraft(
        question_id=question.id,
        title=f"[{sector_name}] {_EVIDENCE_TITLE} {question.evidence}",
        description=f"Anexar evidência documental referente a: {question.text}",
        priority=TaskPriority.MEDIUM,
        severity=TaskSeverity.LOW,
        category=question.category or "documentation",
        lgpd_requirement=_requirement(question, sector_name),
        due_date=now + timedelta(days=_EVIDENCE_DUE_DAYS),
        steps=list(_EVIDENCE_STEPS),
    )


def draft_tasks(
    sector_name: str,
    questions: Sequence[Question],
    answers: Mapping[int, Any],
    catalog: Catalog,
    now: datetime | None = None,
) -> list[TaskDraft]:
    """
    Build task drafts for one sector.

    A "não" or "parcial" answer to a scored question yields a remediation
    task; a "sim" answer to a question that needs evidence yields a task to
    attach the supporting document.
    """
    now = now or utcnow()
    drafts: list[TaskDraft] = []
    for question in questions:
        if not question.scored:
            continue
        klass = classify_answer(answers.get(question.id))
        if klass in (AnswerClass.NO, AnswerClass.PARTIAL):
            drafts.append(_remediation(question, klass, sector_name, catalog, now))
        elif klass is AnswerClass.YES and question.requires_document:
            drafts.append(_evidence(question, sector_name, now))
    return drafts


class TaskGenerator:
    """Persists task drafts for a tenant's sector."""

    def __init__(self, db: AsyncSession, catalog: Catalog, workflow: TaskWorkflow) -> None:
        self._db = db
        self._catalog = catalog
        self._workflow = workflow

    async def _open_auto_tasks(self, user_id: str, sector_id: str) -> list[ComplianceTask]:
        result = await self._db.execute(
            select(ComplianceTask).where(
                ComplianceTask.user_id == user_id,
                ComplianceTask.sector_id == sector_id,
                ComplianceTask.is_auto_generated.is_(True),
                ComplianceTask.status.in_([str(s) for s in OPEN_TASK_STATUSES]),
            )
        )
        return list(result.scalars().all())

    async def generate(
        self,
        user: User,
        sector: CompanySector,
        questions: Sequence[Question],
        answers: Mapping[int, Any],
        reset_tasks: bool = False,
    ) -> GenerationResult:
        outcome = GenerationResult()

        existing = await self._open_auto_tasks(user.id, sector.id)
        if reset_tasks:
            for task in existing:
                await self._workflow.cancel(task, user, "Questionário refeito")
                outcome.cancelled += 1
            existing = []

        open_keys = {(t.source_question_id, task_kind(t.title)) for t in existing}
        for draft in draft_tasks(sector.name, questions, answers, self._catalog):
            if (draft.question_id, draft.kind) in open_keys:
                outcome.skipped += 1
                continue
            task = ComplianceTask(
                user_id=user.id,
                sector_id=sector.id,
                title=draft.title,
                description=draft.description,
                steps=draft.steps,
                category=draft.category,
                lgpd_requirement=draft.lgpd_requirement,
                status=TaskStatus.PENDING,
                priority=draft.priority,
                severity=draft.severity,
                progress=0,
                source_question_id=draft.question_id,
                is_auto_generated=True,
                due_date=draft.due_date,
            )
            self._db.add(task)
            outcome.created.append(task)

        await self._db.flush()
        TASKS_GENERATED.inc(len(outcome.created))
        _log.info(
            "compliance_tasks_generated",
            sector_id=sector.id,
            created=len(outcome.created),
            cancelled=outcome.cancelled,
            skipped=outcome.skipped,
        )
        return outcome
