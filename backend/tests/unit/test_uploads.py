"""Unit tests for upload validation and storage."""
import pytest

from dpofast.config.settings import get_settings
from dpofast.core.errors import ConflictError, ErrorCode, NotFoundError, ValidationError
from dpofast.db.models.document import Document
from dpofast.services.storage.uploads import (
    DOCX_MIME,
    PDF_MIME,
    PendingUpload,
    ensure_not_duplicate,
    remove_stored_file,
    resolve_stored_path,
    sha256,
    staged_files,
    store_bytes,
    validate_upload,
)
from tests.conftest import create_user


# ─── validate_upload ──────────────────────────────────────────────────────────

def test_valid_pdf_returns_extension():
    assert validate_upload("Politica.PDF", PDF_MIME, b"%PDF-1.4", get_settings()) == ".pdf"


def test_unsupported_mime_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        validate_upload("notes.txt", "text/plain", b"hello", get_settings())
    assert exc_info.value.code is ErrorCode.DOC_MIME_REJECTED


def test_extension_must_match_mime():
    with pytest.raises(ValidationError) as exc_info:
        validate_upload("contrato.pdf", DOCX_MIME, b"PK", get_settings())
    assert exc_info.value.code is ErrorCode.DOC_EXTENSION_MISMATCH


def test_empty_file_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        validate_upload("vazio.pdf", PDF_MIME, b"", get_settings())
    assert exc_info.value.code is ErrorCode.DOC_EMPTY


def test_oversized_file_is_rejected():
    settings = get_settings()
    data = b"0" * (settings.max_upload_size_bytes + 1)
    with pytest.raises(ValidationError) as exc_info:
        validate_upload("grande.pdf", PDF_MIME, data, settings)
    assert exc_info.value.code is ErrorCode.DOC_TOO_LARGE


# ─── Storage ──────────────────────────────────────────────────────────────────

def test_store_bytes_uses_random_name(tmp_path):
    stored = store_bytes(b"%PDF-1.4 data", ".pdf", "../../etc/passwd.pdf", PDF_MIME, tmp_path)
    assert stored.filename.endswith(".pdf")
    assert "/" not in stored.filename
    assert stored.original_filename == "../../etc/passwd.pdf"
    assert stored.file_hash == sha256(b"%PDF-1.4 data")
    assert (tmp_path / stored.filename).read_bytes() == b"%PDF-1.4 data"


def test_resolve_refuses_paths_outside_directory(tmp_path):
    (tmp_path / "inside.pdf").write_bytes(b"x")
    assert resolve_stored_path(tmp_path, "inside.pdf") == (tmp_path / "inside.pdf").resolve()
    with pytest.raises(NotFoundError):
        resolve_stored_path(tmp_path, "../outside.pdf")
    with pytest.raises(NotFoundError):
        resolve_stored_path(tmp_path, "missing.pdf")


def test_remove_stored_file_ignores_missing(tmp_path):
    (tmp_path / "a.pdf").write_bytes(b"x")
    remove_stored_file(tmp_path, "a.pdf")
    remove_stored_file(tmp_path, "a.pdf")
    assert not (tmp_path / "a.pdf").exists()


def _pending(n: int) -> PendingUpload:
    return PendingUpload(
        data=f"%PDF-1.4 {n}".encode(), suffix=".pdf", original_filename=f"{n}.pdf", mime_type=PDF_MIME
    )


def test_staged_files_are_kept_when_block_succeeds(tmp_path):
    with staged_files([_pending(1), _pending(2)], tmp_path) as stored:
        assert len(stored) == 2
    assert sorted(p.name for p in tmp_path.iterdir()) == sorted(s.filename for s in stored)


def test_staged_files_are_removed_when_block_raises(tmp_path):
    with pytest.raises(ConflictError):
        with staged_files([_pending(1), _pending(2)], tmp_path) as stored:
            assert len(list(tmp_path.iterdir())) == 2
            raise ConflictError(ErrorCode.DOC_HASH_DUPLICATE, "duplicate")
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_duplicate_content_is_rejected_per_tenant(db_session, session_factory):
    owner = await create_user(session_factory, "owner")
    other = await create_user(session_factory, "other")
    file_hash = sha256(b"same bytes")
    db_session.add(
        Document(
            user_id=owner.id,
            name="Política",
            filename="stored.pdf",
            original_filename="politica.pdf",
            mime_type=PDF_MIME,
            file_size_bytes=10,
            file_hash=file_hash,
        )
    )
    await db_session.flush()

    with pytest.raises(ConflictError) as exc_info:
        await ensure_not_duplicate(db_session, owner.id, file_hash)
    assert exc_info.value.code is ErrorCode.DOC_HASH_DUPLICATE
    await ensure_not_duplicate(db_session, other.id, file_hash)
