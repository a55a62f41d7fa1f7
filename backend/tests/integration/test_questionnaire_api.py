"""Integration tests for /api/v1/questionnaire."""
import pytest

from tests.conftest import complete_questionnaire, full_answers

pytestmark = pytest.mark.asyncio

BASE = "/api/v1/questionnaire/sectors"


def _sector(sectors: list[dict], name: str) -> dict:
    return next(s for s in sectors if s["name"] == name)


# ─── Questions ────────────────────────────────────────────────────────────────

async def test_sector_questions_include_matching_set(client, onboarded):
    headers, sectors = onboarded
    marketing = _sector(sectors, "Marketing")
    resp = await client.get(f"{BASE}/{marketing['id']}/questions", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["question_sets"] == ["marketing"]
    ids = [q["id"] for q in body["questions"]]
    assert ids[:19] == list(range(1, 20))
    assert {301, 302, 303, 304} <= set(ids)


async def test_unknown_sector_gets_generic_questions(client, onboarded):
    headers, _ = onboarded
    resp = await client.post("/api/v1/sectors", json={"name": "Logística"}, headers=headers)
    sector_id = resp.json()["id"]

    resp = await client.get(f"{BASE}/{sector_id}/questions", headers=headers)
    body = resp.json()
    assert body["question_sets"] == ["generic"]
    texts = [q["text"] for q in body["questions"] if q["id"] == 901]
    assert texts == ["Como o setor Logística coleta e processa dados pessoais?"]


async def test_progress_listing_before_any_answer(client, onboarded):
    headers, _ = onboarded
    resp = await client.get(BASE, headers=headers)
    assert resp.status_code == 200
    rows = resp.json()
    assert len(rows) == 3
    assert all(r["progress"] == 0 and r["compliance_score"] is None for r in rows)


# ─── Saving answers ───────────────────────────────────────────────────────────

async def test_draft_save_scores_without_tasks(client, onboarded):
    headers, sectors = onboarded
    marketing = _sector(sectors, "Marketing")
    resp = await client.put(
        f"{BASE}/{marketing['id']}/response",
        json={"answers": [{"question_id": 1, "answer": "SIM"}, {"question_id": 2, "answer": "nao"}]},
        headers=headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["tasks_created"] == 0
    assert body["response"]["compliance_score"] == 50
    assert body["response"]["is_complete"] is False
    stored = {a["question_id"]: a["answer"] for a in body["response"]["answers"]}
    assert stored == {1: "sim", 2: "não"}


async def test_invalid_answers_are_listed(client, onboarded):
    headers, sectors = onboarded
    resp = await client.put(
        f"{BASE}/{sectors[0]['id']}/response",
        json={
            "answers": [
                {"question_id": 1, "answer": "talvez"},
                {"question_id": 9999, "answer": "sim"},
            ]
        },
        headers=headers,
    )
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "QST_001"
    assert {p["question_id"] for p in error["detail"]["problems"]} == {1, 9999}


async def test_completion_requires_every_answer(client, onboarded):
    headers, sectors = onboarded
    resp = await client.put(
        f"{BASE}/{sectors[0]['id']}/response",
        json={"answers": [{"question_id": 1, "answer": "sim"}], "is_complete": True},
        headers=headers,
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "QST_002"


async def test_complete_with_no_answers_generates_remediation_tasks(client, onboarded):
    headers, sectors = onboarded
    body = await complete_questionnaire(client, headers, _sector(sectors, "Marketing"), "não")

    assert body["response"]["is_complete"] is True
    assert body["response"]["compliance_score"] == 0
    assert body["response"]["progress"] == 100
    assert body["tasks_created"] == 11

    tasks = (await client.get("/api/v1/tasks", headers=headers)).json()
    assert tasks["total"] == 11
    assert all(t["title"].startswith("[Marketing] ") for t in tasks["items"])
    assert {t["priority"] for t in tasks["items"]} == {"high"}


async def test_recompleting_skips_duplicate_tasks(client, onboarded):
    headers, sectors = onboarded
    marketing = _sector(sectors, "Marketing")
    await complete_questionnaire(client, headers, marketing, "não")
    body = await complete_questionnaire(client, headers, marketing, "não")
    assert body["tasks_created"] == 0
    assert body["tasks_skipped"] == 11


async def test_reset_cancels_previous_tasks(client, onboarded):
    headers, sectors = onboarded
    marketing = _sector(sectors, "Marketing")
    await complete_questionnaire(client, headers, marketing, "não")

    resp = await client.put(
        f"{BASE}/{marketing['id']}/response",
        json={"answers": full_answers("Marketing", "sim"), "is_complete": True, "reset_tasks": True},
        headers=headers,
    )
    body = resp.json()
    assert body["response"]["compliance_score"] == 100
    assert body["tasks_cancelled"] == 11
    assert body["tasks_created"] == 5

    visible = (await client.get("/api/v1/tasks", headers=headers)).json()
    assert visible["total"] == 5
    every = (await client.get("/api/v1/tasks?include_cancelled=true", headers=headers)).json()
    assert every["total"] == 16


async def test_get_saved_response(client, onboarded):
    headers, sectors = onboarded
    marketing = _sector(sectors, "Marketing")
    resp = await client.get(f"{BASE}/{marketing['id']}/response", headers=headers)
    assert resp.status_code == 404

    await complete_questionnaire(client, headers, marketing, "sim")
    resp = await client.get(f"{BASE}/{marketing['id']}/response", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["is_complete"] is True

    listing = (await client.get(BASE, headers=headers)).json()
    row = next(r for r in listing if r["sector_id"] == marketing["id"])
    assert row["progress"] == 100
    assert row["compliance_score"] == 100
