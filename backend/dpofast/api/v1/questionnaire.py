"""Sector questionnaire API endpoints."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dpofast.api.deps import Audit, CatalogDep, CurrentUser, DbSession, OnboardedProfile
from dpofast.api.v1.sectors import load_sector
from dpofast.core.errors import ErrorCode, NotFoundError, ValidationError
from dpofast.db.base import utcnow
from dpofast.db.models.company import CompanySector
from dpofast.db.models.questionnaire import QuestionnaireAnswer, QuestionnaireResponse
from dpofast.schemas.questionnaire import (
    QuestionnaireSectorOut,
    QuestionOut,
    ResponseOut,
    SaveResponseRequest,
    SaveResponseResult,
    SectorQuestionsOut,
)
from dpofast.services.questionnaire.answers import (
    AnswerProblem,
    canonical_answer,
    missing_question_ids,
)
from dpofast.services.questionnaire.catalog import Question
from dpofast.services.questionnaire.scoring import score_answers, sector_progress
from dpofast.services.tasks.generator import TaskGenerator
from dpofast.services.tasks.workflow import TaskWorkflow

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/questionnaire", tags=["questionnaire"])


def _question_out(question: Question) -> QuestionOut:
    return QuestionOut(
        id=question.id,
        text=question.text,
        type=question.type.value,
        options=list(question.options),
        description=question.description,
        scored=question.scored,
        requires_document=question.requires_document,
        lgpd_article=question.lgpd_article,
        category=question.category,
        severity=question.severity,
    )


async def _load_response(
    db: AsyncSession, user_id: str, sector_id: str
) -> QuestionnaireResponse | None:
    result = await db.execute(
        select(QuestionnaireResponse)
        .options(selectinload(QuestionnaireResponse.answers))
        .where(
            QuestionnaireResponse.user_id == user_id,
            QuestionnaireResponse.sector_id == sector_id,
        )
    )
    return result.scalar_one_or_none()


@router.get(
    "/sectors",
    response_model=list[QuestionnaireSectorOut],
    summary="Questionnaire progress for every active sector",
)
async def list_questionnaire_sectors(
    current_user: CurrentUser, _profile: OnboardedProfile, catalog: CatalogDep, db: DbSession
) -> list[QuestionnaireSectorOut]:
    sectors = (
        await db.execute(
            select(CompanySector)
            .where(CompanySector.user_id == current_user.id, CompanySector.is_active.is_(True))
            .order_by(CompanySector.created_at)
        )
    ).scalars().all()
    responses = {
        r.sector_id: r
        for r in (
            await db.execute(
                select(QuestionnaireResponse)
                .options(selectinload(QuestionnaireResponse.answers))
                .where(QuestionnaireResponse.user_id == current_user.id)
            )
        ).scalars().all()
    }

    out: list[QuestionnaireSectorOut] = []
    for sector in sectors:
        response = responses.get(sector.id)
        questions = catalog.questions_for_sector(sector.name)
        progress = sector_progress(questions, response.answer_map() if response else {})
        out.append(
            QuestionnaireSectorOut(
                sector_id=sector.id,
                name=sector.name,
                answered=progress.answered,
                total=progress.total,
                progress=progress.percentage,
                is_complete=bool(response and response.is_complete),
                compliance_score=response.compliance_score if response else None,
            )
        )
    return out


@router.get(
    "/sectors/{sector_id}/questions",
    response_model=SectorQuestionsOut,
    summary="Questions asked for a sector",
)
async def get_questions(
    sector_id: str,
    current_user: CurrentUser,
    _profile: OnboardedProfile,
    catalog: CatalogDep,
    db: DbSession,
) -> SectorQuestionsOut:
    sector = await load_sector(db, current_user, sector_id)
    return SectorQuestionsOut(
        sector_id=sector.id,
        sector_name=sector.name,
        question_sets=[s.key for s in catalog.matching_sets(sector.name)],
        questions=[_question_out(q) for q in catalog.questions_for_sector(sector.name)],
    )


@router.get(
    "/sectors/{sector_id}/response",
    response_model=ResponseOut,
    summary="Saved answers for a sector",
)
async def get_response(
    sector_id: str, current_user: CurrentUser, _profile: OnboardedProfile, db: DbSession
) -> ResponseOut:
    sector = await load_sector(db, current_user, sector_id)
    response = await _load_response(db, current_user.id, sector.id)
    if response is None:
        raise NotFoundError("QuestionnaireResponse", sector.id)
    return ResponseOut.model_validate(response)


def _validate_answers(
    questions: list[Question], body: SaveResponseRequest
) -> dict[int, tuple[Any, str | None]]:
    """Canonicalise submitted answers; raise one 422 listing every problem."""
    by_id = {q.id: q for q in questions}
    accepted: dict[int, tuple[Any, str | None]] = {}
    problems: list[dict[str, Any]] = []
    for item in body.answers:
        question = by_id.get(item.question_id)
        if question is None:
            problems.append(
                {"question_id": item.question_id, "reason": "not a question of this sector"}
            )
            continue
        observation = item.observation.strip() if item.observation else None
        if item.answer is None:
            accepted[item.question_id] = (None, observation)
            continue
        try:
            accepted[item.question_id] = (canonical_answer(question, item.answer), observation)
        except AnswerProblem as problem:
            problems.append({"question_id": problem.question_id, "reason": problem.reason})

    if problems:
        raise ValidationError(
            "Some answers do not match their questions",
            detail={"problems": problems},
            code=ErrorCode.QUESTIONNAIRE_INVALID_ANSWER,
        )
    return accepted


@router.put(
    "/sectors/{sector_id}/response",
    response_model=SaveResponseResult,
    summary="Save answers for a sector",
)
async def save_response(
    sector_id: str,
    body: SaveResponseRequest,
    current_user: CurrentUser,
    _profile: OnboardedProfile,
    catalog: CatalogDep,
    db: DbSession,
    audit: Audit,
) -> SaveResponseResult:
    """
    Upsert answers, recompute score and progress, and on completion
    generate the sector's compliance tasks.
    """
    sector = await load_sector(db, current_user, sector_id)
    questions = catalog.questions_for_sector(sector.name)
    accepted = _validate_answers(questions, body)

    response = await _load_response(db, current_user.id, sector.id)
    if response is None:
        response = QuestionnaireResponse(user_id=current_user.id, sector_id=sector.id, answers=[])
        db.add(response)

    rows = {row.question_id: row for row in response.answers}
    for question_id, (value, observation) in accepted.items():
        row = rows.get(question_id)
        if row is None:
            response.answers.append(
                QuestionnaireAnswer(question_id=question_id, answer=value, observation=observation)
            )
        else:
            row.answer = value
            row.observation = observation

    answers = response.answer_map()
    if body.is_complete:
        missing = missing_question_ids(questions, answers)
        if missing:
            raise ValidationError(
                "Every question must be answered to complete the questionnaire",
                detail={"missing_question_ids": missing},
                code=ErrorCode.QUESTIONNAIRE_INCOMPLETE,
            )

    response.compliance_score = score_answers(questions, answers)
    response.progress = sector_progress(questions, answers).percentage
    response.is_complete = body.is_complete
    response.completed_at = utcnow() if body.is_complete else None
    await db.flush()

    result = SaveResponseResult(response=ResponseOut.model_validate(response))
    if body.is_complete:
        generator = TaskGenerator(db, catalog, TaskWorkflow(db, audit))
        outcome = await generator.generate(
            current_user, sector, questions, answers, reset_tasks=body.reset_tasks
        )
        result.tasks_created = len(outcome.created)
        result.tasks_cancelled = outcome.cancelled
        result.tasks_skipped = outcome.skipped

    await audit.log(
        event_type="questionnaire.saved",
        actor=current_user,
        entity_type="QuestionnaireResponse",
        entity_id=response.id,
        payload={
            "sector_id": sector.id,
            "is_complete": response.is_complete,
            "score": response.compliance_score,
            "tasks_created": result.tasks_created,
        },
    )
    await db.commit()

    _log.info(
        "questionnaire_saved",
        sector_id=sector.id,
        score=response.compliance_score,
        is_complete=response.is_complete,
    )
    return result
