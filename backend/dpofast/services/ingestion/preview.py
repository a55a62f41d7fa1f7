"""
Inline previews of stored evidence.

DOCX files render as simple HTML (headings, paragraphs and tables in body
order). PDF files are returned as per-page text: pdfplumber first, PyMuPDF
when pdfplumber cannot open the file. Other types have no preview.
"""

from __future__ import annotations

import html
import io
from dataclasses import dataclass, field

import structlog

from dpofast.core.errors import ErrorCode, ValidationError
from dpofast.services.storage.uploads import DOCX_MIME, PDF_MIME

_log = structlog.get_logger(__name__)


@dataclass
class PreviewPage:
    page_number: int
    text: str


@dataclass
class DocumentPreview:
    kind: str  # "html" | "pages"
    html: str | None = None
    pages: list[PreviewPage] = field(default_factory=list)


def _unreadable(kind: str, err: Exception) -> ValidationError:
    return ValidationError(
        f"The {kind} file could not be read",
        detail={"reason": str(err)},
        code=ErrorCode.DOC_PREVIEW_UNSUPPORTED,
    )


# ── DOCX ───────────────────────────────────────────────────────────────── #


def _heading_level(style_name: str) -> int | None:
    if style_name == "Title":
        return 1
    if style_name.startswith("Heading "):
        level = style_name.removeprefix("Heading ").strip()
        if level.isdigit():
            return min(int(level) + 1, 6)
    return None


def docx_to_html(data: bytes) -> str:
    """Render a DOCX byte stream as HTML, escaping all document text."""
    from docx import Document  # type: ignore[import-untyped]
    from docx.table import Table  # type: ignore[import-untyped]
    from docx.text.paragraph import Paragraph  # type: ignore[import-untyped]

    try:
        doc = Document(io.BytesIO(data))
    except Exception as err:
        raise _unreadable("DOCX", err) from err

    parts: list[str] = []
    for element in doc.element.body:
        tag = element.tag.split("}")[-1]
        if tag == "p":
            para = Paragraph(element, doc)
            text = para.text.strip()
            if not text:
                continue
            level = _heading_level(para.style.name if para.style else "Normal")
            if level:
                parts.append(f"<h{level}>{html.escape(text)}</h{level}>")
            else:
                parts.append(f"<p>{html.escape(text)}</p>")
        elif tag == "tbl":
            table = Table(element, doc)
            rows = "".join(
                "<tr>"
                + "".join(f"<td>{html.escape(cell.text.strip())}</td>" for cell in row.cells)
                + "</tr>"
                for row in table.rows
            )
            parts.append(f"<table>{rows}</table>")

    _log.debug("docx_preview_rendered", blocks=len(parts))
    return "\n".join(parts)


# ── PDF ────────────────────────────────────────────────────────────────── #


def _pdf_pages_pdfplumber(data: bytes) -> list[PreviewPage]:
    import pdfplumber  # type: ignore[import-untyped]

    with pdfplumber.open(io.BytesIO(data)) as pdf:
        return [
            PreviewPage(i, (page.extract_text(x_tolerance=3, y_tolerance=3) or "").strip())
            for i, page in enumerate(pdf.pages, start=1)
        ]


def _pdf_pages_pymupdf(data: bytes) -> list[PreviewPage]:
    import fitz  # type: ignore[import-untyped]  # pymupdf

    with fitz.open(stream=data, filetype="pdf") as doc:
        return [
            PreviewPage(i, (page.get_text("text") or "").strip())
            for i, page in enumerate(doc, start=1)
        ]


def pdf_pages(data: bytes) -> list[PreviewPage]:
    try:
        pages = _pdf_pages_pdfplumber(data)
        _log.debug("pdf_preview_extracted", extractor="pdfplumber", pages=len(pages))
        return pages
    except Exception as primary_err:
        _log.warning("pdfplumber_failed", error=str(primary_err), fallback="pymupdf")

    try:
        pages = _pdf_pages_pymupdf(data)
        _log.debug("pdf_preview_extracted", extractor="pymupdf", pages=len(pages))
        return pages
    except Exception as fallback_err:
        _log.error("pymupdf_failed", error=str(fallback_err))
        raise _unreadable("PDF", fallback_err) from fallback_err


def build_preview(mime_type: str, data: bytes) -> DocumentPreview:
    """
    Build a preview for a stored document.

    Raises:
        ValidationError(DOC_007): If the type has no preview or the file
            cannot be parsed.
    """
    if mime_type == DOCX_MIME:
        return DocumentPreview(kind="html", html=docx_to_html(data))
    if mime_type == PDF_MIME:
        return DocumentPreview(kind="pages", pages=pdf_pages(data))
    raise ValidationError(
        f"Preview is not available for {mime_type}",
        detail={"mime_type": mime_type, "previewable": [DOCX_MIME, PDF_MIME]},
        code=ErrorCode.DOC_PREVIEW_UNSUPPORTED,
    )
