"""Report and sector analysis schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ReportOut(BaseModel):
    id: str
    user_id: str
    sector_id: str | None
    title: str
    report_type: str
    compliance_score: int
    file_size_bytes: int
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AnswerBreakdownOut(BaseModel):
    yes: int
    partial: int
    no: int


class SectorAnalysisOut(BaseModel):
    sector_id: str
    name: str
    score: int
    answered: int
    total: int
    progress: int
    is_complete: bool
    breakdown: AnswerBreakdownOut
    issues: list[str]
    recommendations: list[str]


class SectorAnalysisResponse(BaseModel):
    overall_score: int
    sectors: list[SectorAnalysisOut]
