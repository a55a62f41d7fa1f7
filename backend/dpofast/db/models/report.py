"""Generated PDF compliance report metadata."""

from __future__ import annotations

from enum import StrEnum

from sqlalchemy import BigInteger, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from dpofast.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ReportType(StrEnum):
    COMPLIANCE_SUMMARY = "compliance_summary"
    SECTOR_ANALYSIS = "sector_analysis"


class ReportStatus(StrEnum):
    GENERATED = "generated"
    SENT = "sent"
    ARCHIVED = "archived"


class ComplianceReport(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "compliance_reports"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sector_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("company_sectors.id", ondelete="SET NULL"),
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    report_type: Mapped[str] = mapped_column(String(30), nullable=False)
    compliance_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    filename: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReportStatus.GENERATED
    )

    def __repr__(self) -> str:
        return f"<ComplianceReport {self.report_type} score={self.compliance_score}>"
