"""
Evidence file validation and storage.

Files are checked against the MIME allow-list, the extension must agree
with the declared MIME type, and the bytes are stored under a random name
so client-supplied filenames never reach the filesystem.
"""

from __future__ import annotations

import hashlib
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import structlog
from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.config.settings import Settings
from dpofast.core.errors import ConflictError, ErrorCode, NotFoundError, ValidationError
from dpofast.core.metrics import DOCUMENTS_UPLOADED
from dpofast.db.models.document import Document

_log = structlog.get_logger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MIME = "application/pdf"

_EXTENSIONS: dict[str, frozenset[str]] = {
    PDF_MIME: frozenset({".pdf"}),
    DOCX_MIME: frozenset({".docx"}),
    "application/msword": frozenset({".doc"}),
    "image/jpeg": frozenset({".jpg", ".jpeg"}),
    "image/png": frozenset({".png"}),
}


@dataclass(frozen=True)
class StoredFile:
    filename: str
    original_filename: str
    mime_type: str
    size_bytes: int
    file_hash: str


@dataclass(frozen=True)
class PendingUpload:
    """A validated upload that has not been written yet."""

    data: bytes
    suffix: str
    original_filename: str
    mime_type: str

    @property
    def file_hash(self) -> str:
        return sha256(self.data)


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def validate_upload(
    original_filename: str, content_type: str | None, data: bytes, settings: Settings
) -> str:
    """
    Check an upload against the storage rules.

    Returns:
        The lower-cased file extension to store the file under.

    Raises:
        ValidationError: With DOC_003 (type), DOC_006 (extension),
            DOC_005 (empty) or DOC_004 (size).
    """
    if content_type not in settings.allowed_mime_types:
        raise ValidationError(
            f"Unsupported file type: {content_type}",
            detail={"allowed": settings.allowed_mime_types, "received": content_type},
            code=ErrorCode.DOC_MIME_REJECTED,
        )

    suffix = Path(original_filename).suffix.lower()
    if suffix not in _EXTENSIONS.get(content_type, frozenset()):
        raise ValidationError(
            f"File extension '{suffix or '(none)'}' does not match type {content_type}",
            detail={"filename": original_filename, "mime_type": content_type},
            code=ErrorCode.DOC_EXTENSION_MISMATCH,
        )

    if not data:
        raise ValidationError("Uploaded file is empty", code=ErrorCode.DOC_EMPTY)

    if len(data) > settings.max_upload_size_bytes:
        raise ValidationError(
            f"File exceeds maximum allowed size of {settings.max_upload_size_mb}MB",
            detail={"size_bytes": len(data), "limit_bytes": settings.max_upload_size_bytes},
            code=ErrorCode.DOC_TOO_LARGE,
        )
    return suffix


async def read_upload(file: UploadFile, settings: Settings) -> PendingUpload:
    """Read an UploadFile and validate it without writing anything."""
    data = await file.read()
    suffix = validate_upload(file.filename or "", file.content_type, data, settings)
    return PendingUpload(
        data=data,
        suffix=suffix,
        original_filename=file.filename or f"upload{suffix}",
        mime_type=file.content_type or "",
    )


def store_bytes(
    data: bytes, suffix: str, original_filename: str, mime_type: str, directory: Path
) -> StoredFile:
    safe_name = f"{uuid.uuid4().hex}{suffix}"
    (directory / safe_name).write_bytes(data)
    DOCUMENTS_UPLOADED.inc()
    _log.info("evidence_file_stored", filename=safe_name, size_bytes=len(data))
    return StoredFile(
        filename=safe_name,
        original_filename=original_filename,
        mime_type=mime_type,
        size_bytes=len(data),
        file_hash=sha256(data),
    )


async def ensure_not_duplicate(db: AsyncSession, user_id: str, file_hash: str) -> None:
    """Reject content the tenant has already uploaded."""
    result = await db.execute(
        select(Document.id).where(
            Document.user_id == user_id,
            Document.file_hash == file_hash,
            Document.deleted_at.is_(None),
        )
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        raise ConflictError(
            ErrorCode.DOC_HASH_DUPLICATE,
            "A document with identical content already exists.",
            detail={"document_id": existing},
        )


def resolve_stored_path(directory: Path, filename: str) -> Path:
    """Locate a stored file, refusing names that escape ``directory``."""
    base = directory.resolve()
    path = (base / filename).resolve()
    if path.parent != base or not path.is_file():
        raise NotFoundError("Stored file", filename, code=ErrorCode.DOC_NOT_FOUND)
    return path


def remove_stored_file(directory: Path, filename: str) -> None:
    path = directory / Path(filename).name
    if path.exists():
        path.unlink()
        _log.info("stored_file_removed", filename=path.name)


@contextmanager
def staged_files(uploads: Sequence[PendingUpload], directory: Path) -> Iterator[list[StoredFile]]:
    """
    Write ``uploads`` and remove them again if the block raises.

    The database rows and audit entries for the files are recorded inside
    the block, so a failed flush or commit leaves no orphaned bytes.
    """
    stored: list[StoredFile] = []
    try:
        for upload in uploads:
            stored.append(
                store_bytes(
                    upload.data,
                    upload.suffix,
                    upload.original_filename,
                    upload.mime_type,
                    directory,
                )
            )
        yield stored
    except Exception:
        for item in stored:
            remove_stored_file(directory, item.filename)
        _log.warning("staged_files_discarded", count=len(stored))
        raise
