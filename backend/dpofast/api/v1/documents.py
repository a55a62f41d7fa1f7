"""Compliance document API endpoints."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Annotated

import structlog
from fastapi import APIRouter, File, Form, Query, UploadFile
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.api.deps import Audit, CurrentUser, DbSession, is_admin
from dpofast.config.settings import Settings, get_settings
from dpofast.core.errors import ConflictError, ErrorCode, NotFoundError
from dpofast.db.models.document import Document, DocumentStatus
from dpofast.db.models.questionnaire import QuestionnaireResponse
from dpofast.db.models.user import User
from dpofast.schemas.document import (
    DocumentListResponse,
    DocumentOut,
    DocumentPreviewOut,
    PreviewPageOut,
)
from dpofast.services.audit.logger import AuditLogger
from dpofast.services.billing.plans import enforce_document_limit
from dpofast.services.ingestion.preview import build_preview
from dpofast.services.storage.uploads import (
    PendingUpload,
    StoredFile,
    ensure_not_duplicate,
    read_upload,
    resolve_stored_path,
    staged_files,
)

_log = structlog.get_logger(__name__)
router = APIRouter(prefix="/documents", tags=["documents"])


async def load_document(
    db: AsyncSession, user: User, document_id: str, allow_admin: bool = False
) -> Document:
    """Fetch a live document owned by ``user`` (or any, for admins when allowed)."""
    doc = await db.get(Document, document_id)
    if doc is None or doc.is_deleted:
        raise NotFoundError("Document", document_id, code=ErrorCode.DOC_NOT_FOUND)
    if doc.user_id != user.id and not (allow_admin and is_admin(user)):
        raise NotFoundError("Document", document_id, code=ErrorCode.DOC_NOT_FOUND)
    return doc


async def prepare_upload(
    db: AsyncSession,
    owner: User,
    file: UploadFile,
    settings: Settings,
    batch: Sequence[PendingUpload] = (),
) -> PendingUpload:
    """
    Validate one uploaded file without writing it.

    Content the tenant already stored, or that repeats an earlier file of
    the same ``batch``, is rejected with DOC_008.
    """
    pending = await read_upload(file, settings)
    if any(item.file_hash == pending.file_hash for item in batch):
        raise ConflictError(
            ErrorCode.DOC_HASH_DUPLICATE,
            "The same file was sent more than once.",
            detail={"filename": pending.original_filename},
        )
    await ensure_not_duplicate(db, owner.id, pending.file_hash)
    return pending


async def record_upload(
    db: AsyncSession,
    audit: AuditLogger,
    owner: User,
    stored: StoredFile,
    *,
    name: str | None = None,
    category: str = "general",
    description: str | None = None,
    questionnaire_response_id: str | None = None,
    task_id: str | None = None,
) -> Document:
    """Persist the Document row and audit entry for a stored file."""
    doc = Document(
        user_id=owner.id,
        name=(name or "").strip() or stored.original_filename,
        category=category.strip() or "general",
        description=description,
        filename=stored.filename,
        original_filename=stored.original_filename,
        mime_type=stored.mime_type,
        file_size_bytes=stored.size_bytes,
        file_hash=stored.file_hash,
        status=DocumentStatus.PENDING,
        questionnaire_response_id=questionnaire_response_id,
        task_id=task_id,
    )
    db.add(doc)
    await db.flush()

    await audit.log(
        event_type="document.uploaded",
        actor=owner,
        entity_type="Document",
        entity_id=doc.id,
        payload={
            "filename": doc.original_filename,
            "size_bytes": doc.file_size_bytes,
            "task_id": task_id,
        },
    )
    return doc


@router.post(
    "",
    response_model=DocumentOut,
    status_code=201,
    summary="Upload a compliance document",
)
async def upload_document(
    file: Annotated[UploadFile, File(description="PDF, DOCX, DOC, JPEG or PNG file")],
    current_user: CurrentUser,
    db: DbSession,
    audit: Audit,
    name: Annotated[str | None, Form(max_length=255)] = None,
    category: Annotated[str, Form(max_length=100)] = "general",
    description: Annotated[str | None, Form(max_length=5000)] = None,
    questionnaire_response_id: Annotated[str | None, Form()] = None,
) -> DocumentOut:
    """
    Upload evidence to the document library.

    Counts against the plan's document limit. A questionnaire response id,
    when given, must belong to the caller.
    """
    settings = get_settings()
    if questionnaire_response_id:
        response = await db.get(QuestionnaireResponse, questionnaire_response_id)
        if response is None or response.user_id != current_user.id:
            raise NotFoundError("QuestionnaireResponse", questionnaire_response_id)

    await enforce_document_limit(db, current_user)
    pending = await prepare_upload(db, current_user, file, settings)
    with staged_files([pending], settings.upload_dir) as stored:
        doc = await record_upload(
            db,
            audit,
            current_user,
            stored[0],
            name=name,
            category=category,
            description=description,
            questionnaire_response_id=questionnaire_response_id,
        )
        await db.commit()

    _log.info("document_uploaded", document_id=doc.id)
    return DocumentOut.model_validate(doc)


@router.get("", response_model=DocumentListResponse, summary="List own documents")
async def list_documents(
    current_user: CurrentUser,
    db: DbSession,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    status: DocumentStatus | None = Query(default=None),  # noqa: B008
    category: str | None = Query(default=None),
    task_id: str | None = Query(default=None),
) -> DocumentListResponse:
    query = select(Document).where(
        Document.user_id == current_user.id, Document.deleted_at.is_(None)
    )
    if status:
        query = query.where(Document.status == status)
    if category:
        query = query.where(Document.category == category)
    if task_id:
        query = query.where(Document.task_id == task_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await db.execute(
        query.order_by(Document.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    )
    items = [DocumentOut.model_validate(d) for d in result.scalars().all()]
    return DocumentListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/{document_id}", response_model=DocumentOut, summary="Get document details")
async def get_document(document_id: str, current_user: CurrentUser, db: DbSession) -> DocumentOut:
    return DocumentOut.model_validate(
        await load_document(db, current_user, document_id, allow_admin=True)
    )


@router.get("/{document_id}/download", summary="Download the stored file")
async def download_document(
    document_id: str, current_user: CurrentUser, db: DbSession
) -> FileResponse:
    doc = await load_document(db, current_user, document_id, allow_admin=True)
    path = resolve_stored_path(get_settings().upload_dir, doc.filename)
    return FileResponse(path=str(path), media_type=doc.mime_type, filename=doc.original_filename)


@router.get(
    "/{document_id}/preview",
    response_model=DocumentPreviewOut,
    summary="Preview DOCX or PDF content",
)
async def preview_document(
    document_id: str, current_user: CurrentUser, db: DbSession
) -> DocumentPreviewOut:
    doc = await load_document(db, current_user, document_id, allow_admin=True)
    path = resolve_stored_path(get_settings().upload_dir, doc.filename)
    data = await run_in_threadpool(path.read_bytes)
    preview = await run_in_threadpool(build_preview, doc.mime_type, data)
    return DocumentPreviewOut(
        document_id=doc.id,
        mime_type=doc.mime_type,
        kind=preview.kind,
        html=preview.html,
        pages=[PreviewPageOut(page_number=p.page_number, text=p.text) for p in preview.pages],
    )


@router.delete("/{document_id}", status_code=204, summary="Soft-delete a document")
async def delete_document(
    document_id: str, current_user: CurrentUser, db: DbSession, audit: Audit
) -> None:
    doc = await load_document(db, current_user, document_id)
    doc.soft_delete()
    await audit.log(
        event_type="document.deleted",
        actor=current_user,
        entity_type="Document",
        entity_id=doc.id,
    )
    await db.commit()
