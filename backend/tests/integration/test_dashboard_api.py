"""Integration tests for /api/v1/dashboard."""
import pytest

from tests.conftest import complete_questionnaire

pytestmark = pytest.mark.asyncio


async def test_dashboard_before_onboarding(client, user_headers):
    resp = await client.get("/api/v1/dashboard", headers=user_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["onboarding_completed"] is False
    assert body["company_name"] is None
    assert body["sectors"] == []
    assert body["overall_score"] == 0
    assert body["pending_tasks"] == 0
    assert body["documents_total"] == 0
    assert body["last_report_at"] is None
    assert body["plan"] == "free"
    assert body["limits"]["reports_per_month"] == 5
    assert body["suggested_plan"] == "basic"
    assert body["unread_notifications"] == 0


async def test_dashboard_lists_unanswered_sectors(client, onboarded):
    headers, sectors = onboarded
    body = (await client.get("/api/v1/dashboard", headers=headers)).json()

    assert body["onboarding_completed"] is True
    assert body["company_name"] == "Acme Ltda"
    assert [s["sector_id"] for s in body["sectors"]] == [s["id"] for s in sectors]
    assert all(s["progress"] == 0 and s["score"] is None for s in body["sectors"])
    assert not any(s["is_complete"] for s in body["sectors"])


async def test_dashboard_after_questionnaires(client, onboarded):
    headers, sectors = onboarded
    await complete_questionnaire(client, headers, sectors[0], "não")
    await complete_questionnaire(client, headers, sectors[1], "sim")
    await client.post("/api/v1/reports/summary", headers=headers)

    body = (await client.get("/api/v1/dashboard", headers=headers)).json()
    by_id = {s["sector_id"]: s for s in body["sectors"]}
    assert by_id[sectors[0]["id"]]["score"] == 0
    assert by_id[sectors[0]["id"]]["progress"] == 100
    assert by_id[sectors[0]["id"]]["is_complete"] is True
    assert by_id[sectors[1]["id"]]["score"] == 100
    assert by_id[sectors[2]["id"]]["score"] is None
    assert body["overall_score"] == 50

    tasks = (await client.get("/api/v1/tasks", headers=headers)).json()
    assert body["pending_tasks"] == tasks["total"]
    assert body["tasks_by_status"]["pending"] == tasks["total"]
    assert body["last_report_at"] is not None


async def test_dashboard_counts_documents(client, onboarded):
    headers, _ = onboarded
    for name in ("a.pdf", "b.pdf"):
        resp = await client.post(
            "/api/v1/documents",
            files={"file": (name, f"%PDF-1.4 {name}".encode(), "application/pdf")},
            data={"name": name},
            headers=headers,
        )
        assert resp.status_code == 201, resp.text

    body = (await client.get("/api/v1/dashboard", headers=headers)).json()
    assert body["documents_total"] == 2
    assert body["documents_pending"] == 2
    assert body["documents_valid"] == 0
