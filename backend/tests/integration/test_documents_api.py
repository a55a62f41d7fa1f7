"""Integration tests for /api/v1/documents."""
import io

import pytest
from docx import Document as DocxDocument
from reportlab.pdfgen import canvas

from tests.conftest import register

pytestmark = pytest.mark.asyncio

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _pdf(n: int = 0) -> tuple[str, bytes, str]:
    return (f"politica-{n}.pdf", f"%PDF-1.4 documento {n}".encode(), "application/pdf")


def _docx() -> tuple[str, bytes, str]:
    doc = DocxDocument()
    doc.add_heading("Termo de Consentimento", level=1)
    doc.add_paragraph("Autorizo o tratamento dos meus dados.")
    buffer = io.BytesIO()
    doc.save(buffer)
    return ("termo.docx", buffer.getvalue(), DOCX_MIME)


async def _upload(client, headers, file, **form):
    return await client.post(
        "/api/v1/documents", files={"file": file}, data=form, headers=headers
    )


# ─── Upload ───────────────────────────────────────────────────────────────────

async def test_upload_starts_pending(client, user_headers):
    resp = await _upload(client, user_headers, _pdf(), name="Política", category="policy")
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["name"] == "Política"
    assert body["category"] == "policy"
    assert body["original_filename"] == "politica-0.pdf"
    assert len(body["file_hash"]) == 64


async def test_upload_rejects_unsupported_type(client, user_headers):
    resp = await _upload(client, user_headers, ("notas.txt", b"texto", "text/plain"))
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "DOC_003"


async def test_duplicate_content_is_409(client, user_headers):
    await _upload(client, user_headers, _pdf())
    resp = await _upload(client, user_headers, ("copia.pdf", _pdf()[1], "application/pdf"))
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "DOC_008"


async def test_free_plan_document_limit(client, user_headers):
    for n in range(3):
        assert (await _upload(client, user_headers, _pdf(n))).status_code == 201
    resp = await _upload(client, user_headers, _pdf(3))
    assert resp.status_code == 403
    error = resp.json()["error"]
    assert error["code"] == "PLAN_001"
    assert error["detail"]["upgrade_required"] is True


# ─── Read / list / delete ─────────────────────────────────────────────────────

async def test_list_filter_and_download(client, user_headers):
    first = (await _upload(client, user_headers, _pdf(0), category="policy")).json()
    await _upload(client, user_headers, _pdf(1), category="contract")

    resp = await client.get("/api/v1/documents?category=policy", headers=user_headers)
    assert resp.json()["total"] == 1
    assert resp.json()["items"][0]["id"] == first["id"]

    resp = await client.get(f"/api/v1/documents/{first['id']}/download", headers=user_headers)
    assert resp.status_code == 200
    assert resp.content == _pdf(0)[1]


async def test_docx_preview(client, user_headers):
    doc = (await _upload(client, user_headers, _docx())).json()
    resp = await client.get(f"/api/v1/documents/{doc['id']}/preview", headers=user_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["kind"] == "html"
    assert "<h2>Termo de Consentimento</h2>" in body["html"]


async def test_pdf_preview(client, user_headers):
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer)
    pdf.drawString(72, 720, "Registro de Operacoes de Tratamento")
    pdf.save()
    doc = (await _upload(client, user_headers, ("ropa.pdf", buffer.getvalue(), "application/pdf"))).json()

    resp = await client.get(f"/api/v1/documents/{doc['id']}/preview", headers=user_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["kind"] == "pages"
    assert body["pages"][0]["page_number"] == 1
    assert "Registro de Operacoes de Tratamento" in body["pages"][0]["text"]


async def test_image_preview_is_unsupported(client, user_headers):
    doc = (await _upload(client, user_headers, ("logo.png", b"\x89PNG\r\n", "image/png"))).json()
    resp = await client.get(f"/api/v1/documents/{doc['id']}/preview", headers=user_headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "DOC_007"


async def test_soft_delete_frees_the_slot(client, user_headers):
    doc = (await _upload(client, user_headers, _pdf())).json()
    resp = await client.delete(f"/api/v1/documents/{doc['id']}", headers=user_headers)
    assert resp.status_code == 204

    assert (await client.get(f"/api/v1/documents/{doc['id']}", headers=user_headers)).status_code == 404
    # same bytes may be uploaded again once the original is deleted
    assert (await _upload(client, user_headers, _pdf())).status_code == 201


async def test_other_tenant_cannot_read(client, user_headers):
    doc = (await _upload(client, user_headers, _pdf())).json()
    rival = await register(client, "rival")
    resp = await client.get(f"/api/v1/documents/{doc['id']}", headers=rival)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "DOC_001"


async def test_admin_can_read_any_document(client, user_headers, admin_headers):
    doc = (await _upload(client, user_headers, _pdf())).json()
    resp = await client.get(f"/api/v1/documents/{doc['id']}", headers=admin_headers)
    assert resp.status_code == 200
