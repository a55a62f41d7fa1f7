"""Questionnaire schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class QuestionOut(BaseModel):
    id: int
    text: str
    type: str
    options: list[str]
    description: str
    scored: bool
    requires_document: bool
    lgpd_article: str | None
    category: str | None
    severity: str


class SectorQuestionsOut(BaseModel):
    sector_id: str
    sector_name: str
    question_sets: list[str] = Field(description="Keys of the matched question sets")
    questions: list[QuestionOut]


class AnswerIn(BaseModel):
    question_id: int
    answer: str | list[str] | None = None
    observation: str | None = Field(default=None, max_length=5000)


class SaveResponseRequest(BaseModel):
    answers: list[AnswerIn] = Field(default_factory=list)
    is_complete: bool = False
    reset_tasks: bool = False


class AnswerOut(BaseModel):
    question_id: int
    answer: Any
    observation: str | None

    model_config = {"from_attributes": True}


class ResponseOut(BaseModel):
    id: str
    sector_id: str
    is_complete: bool
    compliance_score: int
    progress: int
    completed_at: datetime | None
    updated_at: datetime
    answers: list[AnswerOut]

    model_config = {"from_attributes": True}


class SaveResponseResult(BaseModel):
    response: ResponseOut
    tasks_created: int = 0
    tasks_cancelled: int = 0
    tasks_skipped: int = 0


class QuestionnaireSectorOut(BaseModel):
    sector_id: str
    name: str
    answered: int
    total: int
    progress: int
    is_complete: bool
    compliance_score: int | None
