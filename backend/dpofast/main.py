"""
DPO Fast: FastAPI application factory.

Application lifecycle:
  startup  → configure logging, run DB migrations, load the question
             catalog, seed roles/admin
  shutdown → dispose DB engine pool
"""

from __future__ import annotations

from pathlib import Path

import sqlalchemy as sa
import structlog
from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from dpofast.api.v1.router import router as v1_router
from dpofast.config.logging_config import configure_logging
from dpofast.config.settings import get_settings
from dpofast.core.errors import AppError
from dpofast.core.middleware import (
    CorrelationIDMiddleware,
    SecurityHeadersMiddleware,
    app_error_handler,
    rate_limit_handler,
    unhandled_exception_handler,
    validation_error_handler,
)
from dpofast.core.security import hash_password
from dpofast.db.models.user import Role, RoleEnum, User
from dpofast.db.session import dispose_engine, get_session_factory, ping
from dpofast.services.questionnaire.catalog import get_catalog

_log = structlog.get_logger(__name__)

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"

_ROLE_DESCRIPTIONS = {
    RoleEnum.ADMIN: "DPO reviewer with access to every tenant",
    RoleEnum.USER: "Company account",
}


def _create_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_default],
    )


def _run_migrations() -> None:
    # No ini file: logging stays as configure_logging set it up
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    try:
        command.upgrade(alembic_cfg, "head")
    except (CommandError, SQLAlchemyError) as exc:
        _log.error("migrations_failed", error=str(exc))
        raise
    _log.info("migrations_applied")


async def _startup(app: FastAPI) -> None:
    settings = get_settings()
    configure_logging(log_level=settings.log_level.value, json_logs=settings.log_json)
    _log.info(
        "dpofast_starting",
        version=settings.app_version,
        environment=settings.environment.value,
    )

    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    settings.report_dir.mkdir(parents=True, exist_ok=True)

    if settings.run_migrations_on_startup:
        _run_migrations()

    # Fail fast on a broken catalog rather than on the first questionnaire request
    get_catalog()

    await _seed_database()
    _log.info("dpofast_ready", host=settings.host, port=settings.port)


async def _seed_database() -> None:
    """Ensure roles exist and the bootstrap admin account is created if absent."""
    settings = get_settings()
    factory = get_session_factory()

    async with factory() as db:
        for role_enum in RoleEnum:
            result = await db.execute(select(Role).where(Role.name == role_enum.value))
            if result.scalar_one_or_none() is None:
                db.add(Role(name=role_enum.value, description=_ROLE_DESCRIPTIONS[role_enum]))

        await db.flush()

        admin_result = await db.execute(
            select(User).where(
                sa.or_(
                    User.username == settings.admin_username,
                    User.email == settings.admin_email,
                )
            )
        )
        if admin_result.scalar_one_or_none() is None:
            admin_role = await db.execute(select(Role).where(Role.name == RoleEnum.ADMIN.value))
            role = admin_role.scalar_one()
            db.add(
                User(
                    username=settings.admin_username,
                    email=settings.admin_email,
                    password_hash=hash_password(settings.admin_password.get_secret_value()),
                    first_name="DPO",
                    role_id=role.id,
                    is_active=True,
                )
            )
            _log.info("admin_bootstrapped", username=settings.admin_username)

        await db.commit()


async def _shutdown() -> None:
    await dispose_engine()
    _log.info("dpofast_shutdown")


def create_app() -> FastAPI:
    """Application factory. Returns a configured FastAPI instance."""
    settings = get_settings()
    expose_docs = settings.environment.value != "production"

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "DPO Fast: LGPD compliance for small and medium companies. "
            "Sector questionnaires, action plans, evidence review and reports."
        ),
        docs_url="/docs" if expose_docs else None,
        redoc_url="/redoc" if expose_docs else None,
        openapi_url="/openapi.json" if expose_docs else None,
    )

    # ── Startup / Shutdown ────────────────────────────────────────────── #
    @app.on_event("startup")
    async def on_startup() -> None:
        await _startup(app)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await _shutdown()

    # ── Rate Limiting ─────────────────────────────────────────────────── #
    limiter = _create_limiter()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)  # type: ignore[arg-type]
    app.add_middleware(SlowAPIMiddleware)

    # ── CORS ──────────────────────────────────────────────────────────── #
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )

    # ── Custom Middleware (applied in reverse order) ───────────────────── #
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    # ── Exception Handlers ────────────────────────────────────────────── #
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routes ────────────────────────────────────────────────────────── #
    app.include_router(v1_router)

    # ── Health ────────────────────────────────────────────────────────── #
    @app.get("/health", tags=["health"], summary="Health check")
    async def health() -> dict[str, object]:
        """Reports database reachability, the loaded catalog version and billing setup."""
        db_ok = await ping()
        return {
            "status": "healthy" if db_ok else "degraded",
            "database": "ok" if db_ok else "unavailable",
            "catalog_version": get_catalog().version,
            "billing": "configured" if settings.stripe_secret_key else "disabled",
            "version": settings.app_version,
        }

    # ── Metrics (Prometheus) ──────────────────────────────────────────── #
    @app.get("/metrics", tags=["observability"], summary="Prometheus metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


# Entry point for uvicorn
app = create_app()
