"""Integration tests for /api/v1/admin."""
import pytest

from dpofast.db.models.user import RoleEnum
from tests.conftest import ADMIN_PASSWORD, create_user, login, register

pytestmark = pytest.mark.asyncio


def _pdf(n: int = 0) -> tuple[str, bytes, str]:
    return (f"doc-{n}.pdf", f"%PDF-1.4 doc {n}".encode(), "application/pdf")


async def _me(client, headers) -> dict:
    return (await client.get("/api/v1/auth/me", headers=headers)).json()


# ─── Access control ───────────────────────────────────────────────────────────

async def test_regular_user_is_forbidden(client, user_headers):
    resp = await client.get("/api/v1/admin/stats", headers=user_headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "AUTH_004"


# ─── Subscribers ──────────────────────────────────────────────────────────────

async def test_stats_and_subscribers(client, onboarded, admin_headers):
    headers, _ = onboarded
    await client.post("/api/v1/documents", files={"file": _pdf()}, headers=headers)

    stats = (await client.get("/api/v1/admin/stats", headers=admin_headers)).json()
    assert stats["total_subscribers"] == 1
    assert stats["pending_documents"] == 1

    subscribers = (await client.get("/api/v1/admin/subscribers", headers=admin_headers)).json()
    assert [s["username"] for s in subscribers] == ["acme"]
    assert subscribers[0]["company_name"] == "Acme Ltda"

    details = (
        await client.get(f"/api/v1/admin/subscribers/{subscribers[0]['id']}", headers=admin_headers)
    ).json()
    assert details["sectors"] == 3
    assert details["documents"] == 1


async def test_admin_overrides_subscription(client, user_headers, admin_headers):
    user = await _me(client, user_headers)
    url = f"/api/v1/admin/subscribers/{user['id']}/subscription"

    assert (await client.put(url, json={}, headers=admin_headers)).status_code == 422

    resp = await client.put(
        url, json={"subscription_plan": "pro", "subscription_status": "active"}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["subscription_plan"] == "pro"

    sub = (await client.get("/api/v1/subscription", headers=user_headers)).json()
    assert sub["effective_plan"] == "pro"
    notes = (await client.get("/api/v1/notifications", headers=user_headers)).json()
    assert notes[0]["type"] == "subscription_updated"

    filtered = (await client.get("/api/v1/admin/subscribers?plan=pro", headers=admin_headers)).json()
    assert [s["id"] for s in filtered] == [user["id"]]


# ─── Document review ──────────────────────────────────────────────────────────

async def test_document_approval(client, user_headers, admin_headers):
    doc = (await client.post("/api/v1/documents", files={"file": _pdf()}, headers=user_headers)).json()

    pending = (await client.get("/api/v1/admin/documents/pending", headers=admin_headers)).json()
    assert [d["id"] for d in pending] == [doc["id"]]

    resp = await client.post(
        f"/api/v1/admin/documents/{doc['id']}/approve", json={"notes": "Ok"}, headers=admin_headers
    )
    assert resp.json()["status"] == "valid"

    resp = await client.post(
        f"/api/v1/admin/documents/{doc['id']}/reject", json={"reason": "tarde"}, headers=admin_headers
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "DOC_009"

    notes = (await client.get("/api/v1/notifications", headers=user_headers)).json()
    assert notes[0]["type"] == "document_approved"


async def test_document_rejection_requires_reason(client, user_headers, admin_headers):
    doc = (await client.post("/api/v1/documents", files={"file": _pdf()}, headers=user_headers)).json()
    url = f"/api/v1/admin/documents/{doc['id']}/reject"

    assert (await client.post(url, json={}, headers=admin_headers)).status_code == 422
    resp = await client.post(url, json={"reason": "Ilegível"}, headers=admin_headers)
    assert resp.json()["status"] == "rejected"
    assert resp.json()["review_notes"] == "Ilegível"

    rejected = (
        await client.get("/api/v1/admin/documents?status=rejected", headers=admin_headers)
    ).json()
    assert [d["id"] for d in rejected] == [doc["id"]]


# ─── Task review ──────────────────────────────────────────────────────────────

async def test_task_review_bundle(client, user_headers, admin_headers):
    task = (
        await client.post("/api/v1/tasks", json={"title": "Mapear dados"}, headers=user_headers)
    ).json()
    await client.post(
        f"/api/v1/tasks/{task['id']}/documents", files=[("files", _pdf())], headers=user_headers
    )
    await client.post(f"/api/v1/tasks/{task['id']}/submit", json={}, headers=user_headers)

    pending = (await client.get("/api/v1/admin/tasks/pending", headers=admin_headers)).json()
    assert [t["id"] for t in pending] == [task["id"]]

    bundle = (
        await client.get(f"/api/v1/admin/tasks/{task['id']}/review", headers=admin_headers)
    ).json()
    assert bundle["owner"]["username"] == "acme"
    assert len(bundle["documents"]) == 1
    assert [h["to_status"] for h in bundle["history"]] == ["in_review", "pending"]


async def test_rejecting_a_task_needs_comments(client, user_headers, admin_headers):
    task = (
        await client.post("/api/v1/tasks", json={"title": "Mapear dados"}, headers=user_headers)
    ).json()
    await client.post(
        f"/api/v1/tasks/{task['id']}/documents", files=[("files", _pdf())], headers=user_headers
    )
    await client.post(f"/api/v1/tasks/{task['id']}/submit", json={}, headers=user_headers)

    resp = await client.post(
        f"/api/v1/admin/tasks/{task['id']}/reject", json={}, headers=admin_headers
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "TASK_005"


# ─── Administrators ───────────────────────────────────────────────────────────

async def test_create_and_list_admins(client, admin_headers):
    resp = await client.post(
        "/api/v1/admin/admins",
        json={"username": "dpo2", "email": "DPO2@example.com", "password": ADMIN_PASSWORD},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["role"] == "admin"
    assert resp.json()["email"] == "dpo2@example.com"

    admins = (await client.get("/api/v1/admin/admins", headers=admin_headers)).json()
    assert [a["username"] for a in admins] == ["dpo", "dpo2"]
    assert await login(client, "dpo2", ADMIN_PASSWORD)


async def test_promote_and_demote(client, session_factory, admin_headers):
    user = await create_user(session_factory, "analista")
    promote = f"/api/v1/admin/admins/{user.id}/promote"

    resp = await client.post(promote, headers=admin_headers)
    assert resp.json()["role"] == "admin"

    resp = await client.post(promote, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "ADM_002"

    resp = await client.post(f"/api/v1/admin/admins/{user.id}/demote", headers=admin_headers)
    assert resp.json()["role"] == "user"


async def test_admin_cannot_change_own_role(client, admin_headers):
    me = await _me(client, admin_headers)
    resp = await client.post(f"/api/v1/admin/admins/{me['id']}/demote", headers=admin_headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "ADM_001"


async def test_demotion_always_leaves_an_admin(client, admin_headers):
    await client.post(
        "/api/v1/admin/admins",
        json={"username": "dpo2", "email": "dpo2@example.com", "password": ADMIN_PASSWORD},
        headers=admin_headers,
    )
    second = await login(client, "dpo2", ADMIN_PASSWORD)
    me = await _me(client, admin_headers)
    other = await _me(client, second)

    resp = await client.post(f"/api/v1/admin/admins/{other['id']}/demote", headers=admin_headers)
    assert resp.status_code == 200

    # the demoted account can no longer demote the remaining admin
    resp = await client.post(f"/api/v1/admin/admins/{me['id']}/demote", headers=second)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "AUTH_004"

    admins = (await client.get("/api/v1/admin/admins", headers=admin_headers)).json()
    assert [a["username"] for a in admins] == ["dpo"]

async def test_deactivated_user_loses_access(client, session_factory, admin_headers):
    await create_user(session_factory, "saindo", RoleEnum.USER)
    headers = await register(client, "ficando")
    target = await login(client, "saindo", "Senha@Forte123")
    me = await _me(client, target)

    resp = await client.delete(f"/api/v1/admin/users/{me['id']}", headers=admin_headers)
    assert resp.status_code == 204
    assert (await client.get("/api/v1/auth/me", headers=target)).status_code == 401
    assert (await client.get("/api/v1/auth/me", headers=headers)).status_code == 200
