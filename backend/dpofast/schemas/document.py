"""Document schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from dpofast.db.models.document import DocumentStatus


class DocumentOut(BaseModel):
    id: str
    user_id: str
    name: str
    category: str
    description: str | None
    original_filename: str
    mime_type: str
    file_size_bytes: int
    file_hash: str
    status: DocumentStatus
    review_notes: str | None
    reviewed_at: datetime | None
    questionnaire_response_id: str | None
    task_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DocumentListResponse(BaseModel):
    items: list[DocumentOut]
    total: int
    page: int
    page_size: int


class PreviewPageOut(BaseModel):
    page_number: int
    text: str


class DocumentPreviewOut(BaseModel):
    document_id: str
    mime_type: str
    kind: str = Field(description="'html' for DOCX, 'pages' for PDF")
    html: str | None = None
    pages: list[PreviewPageOut] = Field(default_factory=list)


class DocumentReviewRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=5000)
