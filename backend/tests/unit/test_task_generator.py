"""Unit tests for dpofast.services.tasks.generator."""
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from dpofast.db.models.company import CompanySector
from dpofast.db.models.task import ComplianceTask, TaskPriority, TaskSeverity, TaskStatus
from dpofast.services.audit.logger import AuditLogger
from dpofast.services.questionnaire.catalog import Question, QuestionType, get_catalog
from dpofast.services.tasks.generator import TaskGenerator, draft_tasks, escalate
from dpofast.services.tasks.workflow import TaskWorkflow
from tests.conftest import create_user

NOW = datetime(2026, 1, 10, tzinfo=UTC)


def _answers(questions, value: str) -> dict:
    return {q.id: value for q in questions if q.scored}


# ─── escalate ─────────────────────────────────────────────────────────────────

def test_escalate_moves_one_step_up():
    assert escalate("low") is TaskSeverity.MEDIUM
    assert escalate("high") is TaskSeverity.CRITICAL


def test_escalate_saturates_at_critical():
    assert escalate("critical") is TaskSeverity.CRITICAL


# ─── draft_tasks ──────────────────────────────────────────────────────────────

def test_no_answer_gives_urgent_remediation():
    catalog = get_catalog()
    questions = catalog.questions_for_sector("Marketing")
    drafts = draft_tasks("Marketing", questions, {1: "não"}, catalog, now=NOW)

    assert len(drafts) == 1
    draft = drafts[0]
    assert draft.question_id == 1
    assert draft.priority is TaskPriority.HIGH
    assert draft.severity is TaskSeverity.CRITICAL  # high escalated
    assert draft.due_date == NOW + timedelta(days=15)
    assert draft.title.startswith("[Marketing] ")
    assert draft.description.startswith("URGENTE")
    assert draft.steps  # task template steps


def test_partial_answer_gives_improvement_task():
    catalog = get_catalog()
    questions = catalog.questions_for_sector("Marketing")
    drafts = draft_tasks("Marketing", questions, {1: "parcial"}, catalog, now=NOW)

    assert drafts[0].priority is TaskPriority.MEDIUM
    assert drafts[0].severity is TaskSeverity.HIGH
    assert drafts[0].due_date == NOW + timedelta(days=30)
    assert drafts[0].description.startswith("MELHORIA")


def test_yes_with_evidence_asks_for_document():
    catalog = get_catalog()
    questions = catalog.questions_for_sector("Marketing")
    drafts = draft_tasks("Marketing", questions, {1: "sim", 2: "sim"}, catalog, now=NOW)

    # question 1 needs evidence, question 2 does not
    assert [d.question_id for d in drafts] == [1]
    assert "Anexar documento: Política de Privacidade" in drafts[0].title
    assert drafts[0].severity is TaskSeverity.LOW
    assert drafts[0].due_date == NOW + timedelta(days=20)


def test_not_applicable_and_unscored_answers_yield_nothing():
    catalog = get_catalog()
    questions = catalog.questions_for_sector("Marketing")
    answers = {9: "não se aplica", 6: "Para faturamento"}
    assert draft_tasks("Marketing", questions, answers, catalog, now=NOW) == []


def test_question_without_template_or_article_gets_fallbacks():
    catalog = get_catalog()
    question = Question(
        id=999,
        text="O setor revisa acessos periodicamente?",
        type=QuestionType.SINGLE,
        options=("sim", "não"),
        scored=True,
        sector_key="generic",
    )
    drafts = draft_tasks("Logística", [question], {999: "não"}, catalog, now=NOW)

    assert drafts[0].title == "[Logística] Adequação: O setor revisa acessos periodicamente?"
    assert drafts[0].lgpd_requirement == "Adequação setorial - Logística"
    assert drafts[0].steps == []


# ─── TaskGenerator ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_generate_persists_and_skips_duplicates(db_session, session_factory):
    user = await create_user(session_factory, "gen-user")
    sector = CompanySector(user_id=user.id, name="Marketing", is_active=True)
    db_session.add(sector)
    await db_session.flush()

    catalog = get_catalog()
    questions = catalog.questions_for_sector(sector.name)
    answers = _answers(questions, "não")
    generator = TaskGenerator(db_session, catalog, TaskWorkflow(db_session, AuditLogger(db_session)))

    first = await generator.generate(user, sector, questions, answers)
    assert len(first.created) == len(answers)
    assert all(t.is_auto_generated for t in first.created)

    second = await generator.generate(user, sector, questions, answers)
    assert second.created == []
    assert second.skipped == len(answers)


@pytest.mark.asyncio
async def test_generate_with_reset_cancels_open_tasks(db_session, session_factory):
    user = await create_user(session_factory, "reset-user")
    sector = CompanySector(user_id=user.id, name="Marketing", is_active=True)
    db_session.add(sector)
    await db_session.flush()

    catalog = get_catalog()
    questions = catalog.questions_for_sector(sector.name)
    generator = TaskGenerator(db_session, catalog, TaskWorkflow(db_session, AuditLogger(db_session)))

    await generator.generate(user, sector, questions, _answers(questions, "não"))
    outcome = await generator.generate(
        user, sector, questions, _answers(questions, "sim"), reset_tasks=True
    )

    assert outcome.cancelled > 0
    result = await db_session.execute(
        select(ComplianceTask).where(ComplianceTask.status == TaskStatus.CANCELLED)
    )
    assert len(result.scalars().all()) == outcome.cancelled
    assert all("Anexar documento" in t.title for t in outcome.created)


@pytest.mark.asyncio
async def test_changed_answer_does_not_duplicate_open_remediation(db_session, session_factory):
    user = await create_user(session_factory, "flip-user")
    sector = CompanySector(user_id=user.id, name="Marketing", is_active=True)
    db_session.add(sector)
    await db_session.flush()

    catalog = get_catalog()
    questions = catalog.questions_for_sector(sector.name)
    generator = TaskGenerator(db_session, catalog, TaskWorkflow(db_session, AuditLogger(db_session)))

    first = await generator.generate(user, sector, questions, {19: "parcial"})
    assert [t.title for t in first.created] == [
        "[Marketing] Melhorar: Os dados pessoais são revisados periodicamente?"
    ]

    second = await generator.generate(user, sector, questions, {19: "não"})
    assert second.created == []
    assert second.skipped == 1

    result = await db_session.execute(
        select(ComplianceTask).where(
            ComplianceTask.user_id == user.id, ComplianceTask.source_question_id == 19
        )
    )
    assert len(result.scalars().all()) == 1


def test_evidence_and_remediation_drafts_differ_in_kind():
    catalog = get_catalog()
    questions = [q for q in catalog.questions_for_sector("Marketing") if q.id == 1]
    evidence = draft_tasks("Marketing", questions, {1: "sim"}, catalog, NOW)
    remediation = draft_tasks("Marketing", questions, {1: "não"}, catalog, NOW)
    assert evidence[0].kind == "evidence"
    assert remediation[0].kind == "remediation"
