"""
Questionnaire response models.

A QuestionnaireResponse is the per-user, per-sector envelope carrying the
derived completion and score fields; each QuestionnaireAnswer row holds the
answer to one catalog question plus its free-text observation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dpofast.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class QuestionnaireResponse(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "questionnaire_responses"
    __table_args__ = (
        UniqueConstraint("user_id", "sector_id", name="uq_questionnaire_user_sector"),
    )

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sector_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("company_sectors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    compliance_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    answers: Mapped[list[QuestionnaireAnswer]] = relationship(
        "QuestionnaireAnswer",
        back_populates="response",
        cascade="all, delete-orphan",
        order_by="QuestionnaireAnswer.question_id",
    )

    def answer_map(self) -> dict[int, Any]:
        """Question id to stored answer. Requires ``answers`` to be loaded."""
        return {a.question_id: a.answer for a in self.answers}

    def __repr__(self) -> str:
        return f"<QuestionnaireResponse sector={self.sector_id} score={self.compliance_score}>"


class QuestionnaireAnswer(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "questionnaire_answers"
    __table_args__ = (
        UniqueConstraint("response_id", "question_id", name="uq_answer_response_question"),
    )

    response_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("questionnaire_responses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # str for single/text questions, list[str] for multiple-choice
    answer: Mapped[Any] = mapped_column(JSON, nullable=True)
    observation: Mapped[str | None] = mapped_column(Text, nullable=True)

    response: Mapped[QuestionnaireResponse] = relationship(
        "QuestionnaireResponse", back_populates="answers"
    )
