"""Answer validation and canonicalisation against catalog questions."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from dpofast.services.questionnaire.catalog import Question, QuestionType, normalize_name
from dpofast.services.questionnaire.scoring import is_answered


class AnswerProblem(ValueError):
    """A submitted answer that does not fit its question."""

    def __init__(self, question_id: int, reason: str) -> None:
        super().__init__(f"question {question_id}: {reason}")
        self.question_id = question_id
        self.reason = reason


def _match_option(question: Question, value: str) -> str | None:
    wanted = normalize_name(value)
    for option in question.options:
        if normalize_name(option) == wanted:
            return option
    return None


def canonical_answer(question: Question, value: Any) -> Any:
    """
    Return the answer in its stored form.

    Options are matched ignoring case and accents, so ``"nao"`` is stored as
    ``"não"``. Raises AnswerProblem when the value does not fit the question.
    """
    if question.type is QuestionType.TEXT:
        if not isinstance(value, str) or not value.strip():
            raise AnswerProblem(question.id, "expected non-empty text")
        return value.strip()

    if question.type is QuestionType.SINGLE:
        if not isinstance(value, str):
            raise AnswerProblem(question.id, "expected a single option")
        option = _match_option(question, value)
        if option is None:
            raise AnswerProblem(question.id, f"'{value}' is not one of {list(question.options)}")
        return option

    if not isinstance(value, list) or not value:
        raise AnswerProblem(question.id, "expected a non-empty list of options")
    selected: list[str] = []
    for item in value:
        option = _match_option(question, item) if isinstance(item, str) else None
        if option is None:
            raise AnswerProblem(question.id, f"'{item}' is not one of {list(question.options)}")
        if option not in selected:
            selected.append(option)
    return selected


def missing_question_ids(questions: Sequence[Question], answers: Mapping[int, Any]) -> list[int]:
    return [q.id for q in questions if not is_answered(answers.get(q.id))]
