"""
Shared pytest fixtures for DPO Fast backend tests.

Provides:
  - async SQLite in-memory database (per-test isolation, roles seeded)
  - FastAPI app with the DB dependency overridden
  - helpers to register, onboard and authenticate users and admins
"""
from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator

# Settings are read once and cached, so the environment must be ready
# before anything from dpofast is imported.
_STORAGE = tempfile.mkdtemp(prefix="dpofast-tests-")
os.environ.update(
    {
        "ENVIRONMENT": "testing",
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "JWT_SECRET_KEY": "test-secret-key-not-for-production-at-all",
        "ADMIN_PASSWORD": "TestAdmin@2024!",
        "UPLOAD_DIR": os.path.join(_STORAGE, "uploads"),
        "REPORT_DIR": os.path.join(_STORAGE, "reports"),
        "RUN_MIGRATIONS_ON_STARTUP": "false",
        "LOG_JSON": "false",
        "RATE_LIMIT_DEFAULT": "1000/minute",
        "STRIPE_SECRET_KEY": "sk_test_dummy",
        "STRIPE_WEBHOOK_SECRET": "whsec_test_secret",
        "STRIPE_PRICE_BASIC": "price_basic_test",
        "STRIPE_PRICE_PRO": "price_pro_test",
    }
)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from dpofast.core.security import hash_password  # noqa: E402
from dpofast.db.base import Base  # noqa: E402
from dpofast.db.models.user import Role, RoleEnum, User  # noqa: E402
from dpofast.db.session import get_db  # noqa: E402
from dpofast.main import create_app  # noqa: E402
from dpofast.services.questionnaire.catalog import QuestionType, get_catalog  # noqa: E402

USER_PASSWORD = "Senha@Forte123"
ADMIN_PASSWORD = "TestAdmin@2024!"

PROFILE_PAYLOAD = {
    "company_name": "Acme Ltda",
    "departments": ["Recursos Humanos", "Financeiro"],
    "sectors": ["Marketing"],
    "company_size": "small",
    "primary_contact": "Maria Souza",
}


# ─── Database ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def db_engine():
    """Async in-memory SQLite engine per test, schema created and roles seeded."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        for role_enum in RoleEnum:
            session.add(Role(name=role_enum.value, description=role_enum.value))
        await session.commit()

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


async def create_user(
    session_factory,
    username: str,
    role: RoleEnum = RoleEnum.USER,
    password: str = USER_PASSWORD,
) -> User:
    """Insert a user directly, bypassing the API."""
    async with session_factory() as session:
        role_row = (
            await session.execute(select(Role).where(Role.name == role.value))
        ).scalar_one()
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(password),
            role=role_row,
            is_active=True,
        )
        session.add(user)
        await session.commit()
        return user


# ─── App & HTTP client ────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def app(session_factory):
    """FastAPI test app sharing the per-test engine."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app_ = create_app()
    app_.dependency_overrides[get_db] = override_get_db
    return app_


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated async HTTP client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


async def login(client: AsyncClient, username: str, password: str) -> dict[str, str]:
    resp = await client.post(
        "/api/v1/auth/login", json={"username": username, "password": password}
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


async def register(client: AsyncClient, username: str) -> dict[str, str]:
    resp = await client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "email": f"{username}@example.com",
            "password": USER_PASSWORD,
            "first_name": "Maria",
            "last_name": "Souza",
            "company": "Acme",
        },
    )
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


async def onboard(client: AsyncClient, headers: dict[str, str]) -> list[dict]:
    """Create the company profile and import its sectors; returns the sectors."""
    resp = await client.post("/api/v1/company-profile", json=PROFILE_PAYLOAD, headers=headers)
    assert resp.status_code == 201, resp.text
    resp = await client.post("/api/v1/sectors/import-from-profile", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["sectors"]


@pytest_asyncio.fixture
async def user_headers(client) -> dict[str, str]:
    """A freshly registered company account that has not onboarded yet."""
    return await register(client, "acme")


@pytest_asyncio.fixture
async def onboarded(client, user_headers) -> tuple[dict[str, str], list[dict]]:
    """(headers, sectors) for an account with a profile and imported sectors."""
    return user_headers, await onboard(client, user_headers)


@pytest_asyncio.fixture
async def admin_headers(client, session_factory) -> dict[str, str]:
    await create_user(session_factory, "dpo", RoleEnum.ADMIN, ADMIN_PASSWORD)
    return await login(client, "dpo", ADMIN_PASSWORD)


# ─── Questionnaire helpers ────────────────────────────────────────────────────

def full_answers(sector_name: str, choice: str = "não") -> list[dict]:
    """
    Answer every catalog question of a sector.

    Single-choice questions get ``choice`` when it is an option, otherwise
    their first option.
    """
    answers = []
    for question in get_catalog().questions_for_sector(sector_name):
        if question.type is QuestionType.TEXT:
            value: str | list[str] = "Resposta de teste"
        elif question.type is QuestionType.MULTIPLE:
            value = [question.options[0]]
        else:
            value = choice if choice in question.options else question.options[0]
        answers.append({"question_id": question.id, "answer": value})
    return answers


async def complete_questionnaire(
    client: AsyncClient, headers: dict[str, str], sector: dict, choice: str = "não"
) -> dict:
    resp = await client.put(
        f"/api/v1/questionnaire/sectors/{sector['id']}/response",
        json={"answers": full_answers(sector["name"], choice), "is_complete": True},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()
