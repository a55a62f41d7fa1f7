"""Unit tests for dpofast.services.ingestion.preview."""
import io

import pytest
from docx import Document as DocxDocument
from reportlab.pdfgen import canvas

from dpofast.core.errors import ErrorCode, ValidationError
from dpofast.services.ingestion.preview import build_preview, docx_to_html
from dpofast.services.storage.uploads import DOCX_MIME, PDF_MIME


def _docx_bytes() -> bytes:
    doc = DocxDocument()
    doc.add_heading("Política de Privacidade", level=1)
    doc.add_paragraph("Dados <pessoais> & sensíveis")
    doc.add_paragraph("")
    table = doc.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Finalidade"
    table.rows[0].cells[1].text = "Base legal"
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def _pdf_bytes(*pages: str) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer)
    for text in pages:
        pdf.drawString(72, 720, text)
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def test_docx_renders_headings_paragraphs_and_tables():
    html = docx_to_html(_docx_bytes())
    assert "<h2>Política de Privacidade</h2>" in html
    assert "<table><tr><td>Finalidade</td><td>Base legal</td></tr></table>" in html


def test_docx_text_is_escaped():
    html = docx_to_html(_docx_bytes())
    assert "<p>Dados &lt;pessoais&gt; &amp; sensíveis</p>" in html
    assert "<p></p>" not in html


def test_build_preview_for_docx():
    preview = build_preview(DOCX_MIME, _docx_bytes())
    assert preview.kind == "html"
    assert preview.html


def test_build_preview_for_pdf_returns_page_text():
    preview = build_preview(PDF_MIME, _pdf_bytes("Politica de Privacidade", "Base legal"))
    assert preview.kind == "pages"
    assert [p.page_number for p in preview.pages] == [1, 2]
    assert "Politica de Privacidade" in preview.pages[0].text
    assert "Base legal" in preview.pages[1].text


def test_corrupt_docx_is_reported():
    with pytest.raises(ValidationError) as exc_info:
        build_preview(DOCX_MIME, b"not a zip archive")
    assert exc_info.value.code is ErrorCode.DOC_PREVIEW_UNSUPPORTED


def test_corrupt_pdf_is_reported():
    with pytest.raises(ValidationError) as exc_info:
        build_preview(PDF_MIME, b"not a pdf at all")
    assert exc_info.value.code is ErrorCode.DOC_PREVIEW_UNSUPPORTED


def test_images_have_no_preview():
    with pytest.raises(ValidationError) as exc_info:
        build_preview("image/png", b"\x89PNG")
    assert exc_info.value.code is ErrorCode.DOC_PREVIEW_UNSUPPORTED
    assert exc_info.value.detail["mime_type"] == "image/png"
