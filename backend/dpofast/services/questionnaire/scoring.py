"""
Compliance scoring over questionnaire answers.

Only scored questions whose answer falls in the yes / partial / no
vocabulary contribute: yes counts fully, partial counts half. Answers
such as "não se aplica" are ignored rather than penalised.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from dpofast.services.questionnaire.catalog import Question, normalize_name


class AnswerClass(StrEnum):
    YES = "yes"
    PARTIAL = "partial"
    NO = "no"


_VOCABULARY = {
    "sim": AnswerClass.YES,
    "parcial": AnswerClass.PARTIAL,
    "nao": AnswerClass.NO,
}


def classify_answer(value: Any) -> AnswerClass | None:
    """Map a raw answer onto yes/partial/no, or None when outside the vocabulary."""
    if not isinstance(value, str):
        return None
    return _VOCABULARY.get(normalize_name(value))


def is_answered(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, list):
        return len(value) > 0
    return True


@dataclass
class AnswerBreakdown:
    yes: int = 0
    partial: int = 0
    no: int = 0

    @property
    def counted(self) -> int:
        return self.yes + self.partial + self.no

    def add(self, other: AnswerBreakdown) -> None:
        self.yes += other.yes
        self.partial += other.partial
        self.no += other.no


@dataclass
class SectorProgress:
    answered: int
    total: int

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 0
        return round(100 * self.answered / self.total)


@dataclass
class SectorFindings:
    """Per-sector result used by reports and the dashboard."""

    score: int
    breakdown: AnswerBreakdown
    progress: SectorProgress
    issues: list[str] = field(default_factory=list)


def breakdown(questions: Iterable[Question], answers: Mapping[int, Any]) -> AnswerBreakdown:
    result = AnswerBreakdown()
    for question in questions:
        if not question.scored:
            continue
        klass = classify_answer(answers.get(question.id))
        if klass is AnswerClass.YES:
            result.yes += 1
        elif klass is AnswerClass.PARTIAL:
            result.partial += 1
        elif klass is AnswerClass.NO:
            result.no += 1
    return result


def score_breakdown(counts: AnswerBreakdown) -> int:
    """round(100 * (yes + partial / 2) / counted); 0 when nothing counted."""
    if counts.counted == 0:
        return 0
    return round(100 * (counts.yes + 0.5 * counts.partial) / counts.counted)


def score_answers(questions: Iterable[Question], answers: Mapping[int, Any]) -> int:
    return score_breakdown(breakdown(questions, answers))


def sector_progress(questions: Sequence[Question], answers: Mapping[int, Any]) -> SectorProgress:
    answered = sum(1 for q in questions if is_answered(answers.get(q.id)))
    return SectorProgress(answered=answered, total=len(questions))


def sector_issues(questions: Iterable[Question], answers: Mapping[int, Any]) -> list[str]:
    issues: list[str] = []
    for question in questions:
        if not question.scored:
            continue
        klass = classify_answer(answers.get(question.id))
        if klass is AnswerClass.PARTIAL:
            issues.append(f"Implementação parcial: {question.text}")
        elif klass is AnswerClass.NO:
            issues.append(f"Não implementado: {question.text}")
    return issues


def analyze(questions: Sequence[Question], answers: Mapping[int, Any]) -> SectorFindings:
    counts = breakdown(questions, answers)
    return SectorFindings(
        score=score_breakdown(counts),
        breakdown=counts,
        progress=sector_progress(questions, answers),
        issues=sector_issues(questions, answers),
    )


def overall_score(sector_scores: Iterable[int]) -> int:
    """Arithmetic mean of sector scores, rounded; 0 without any sector."""
    scores = list(sector_scores)
    if not scores:
        return 0
    return round(sum(scores) / len(scores))


def score_band(score: int) -> str:
    """high >= 70, medium 40-69, low < 40."""
    if score >= 70:
        return "high"
    if score >= 40:
        return "medium"
    return "low"
