"""
Request middleware and exception handlers.

Every error leaves the API in the same envelope::

    {"error": {"code": "...", "message": "...", "detail": {...}}}

whether it came from a domain AppError, request validation, the rate
limiter or an unexpected exception.
"""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from dpofast.core.errors import AppError, ErrorCode
from dpofast.core.metrics import HTTP_REQUEST_DURATION, HTTP_REQUESTS

_log = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
# Client-supplied IDs end up in logs and audit rows
_SAFE_CORRELATION_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# Swagger UI needs inline scripts and a CDN; everything else is JSON or files
_DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")
_API_CSP = "default-src 'none'; frame-ancestors 'none'"


def _route_label(request: Request) -> str:
    """Route template (``/api/v1/tasks/{task_id}``) so IDs don't explode label cardinality."""
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if not template:
        return "unmatched"
    # Included routers may match under a root_path that carries their prefix
    mount_prefix = request.scope.get("root_path", "")
    deploy_prefix = request.app.root_path or ""
    if deploy_prefix and mount_prefix.startswith(deploy_prefix):
        mount_prefix = mount_prefix[len(deploy_prefix):]
    if mount_prefix and not template.startswith(mount_prefix + "/"):
        template = mount_prefix + template
    return template


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Binds a correlation ID, method and path to the structlog context.

    An incoming ``X-Correlation-ID`` is reused when it looks sane, so a
    frontend can stitch its own traces to ours. Request count and latency
    are recorded per route template.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        incoming = request.headers.get(CORRELATION_HEADER, "")
        correlation_id = (
            incoming if _SAFE_CORRELATION_ID.match(incoming) else str(uuid.uuid4())
        )
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )
        request.state.correlation_id = correlation_id

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        route = _route_label(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        HTTP_REQUESTS.labels(
            method=request.method, route=route, status=str(response.status_code)
        ).inc()
        HTTP_REQUEST_DURATION.labels(method=request.method, route=route).observe(elapsed)
        _log.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=int(elapsed * 1000),
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers; responses carrying company data are never cached."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        if not request.url.path.startswith(_DOCS_PATHS):
            response.headers.setdefault("Content-Security-Policy", _API_CSP)
        response.headers.setdefault("Cache-Control", "no-store")
        return response


# ── Exception handlers ────────────────────────────────────────────────── #


def _envelope(
    request: Request,
    status_code: int,
    code: ErrorCode,
    message: str,
    detail: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code.value, "message": message, "detail": detail or {}}},
        headers={CORRELATION_HEADER: getattr(request.state, "correlation_id", ""), **(headers or {})},
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    _log.warning(
        "application_error",
        error_code=exc.code.value,
        message=exc.message,
        http_status=exc.http_status,
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers={CORRELATION_HEADER: getattr(request.state, "correlation_id", "")},
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Body, query and path validation failures; field errors go under ``detail.errors``."""
    errors = jsonable_encoder(exc.errors(), exclude={"input", "ctx", "url"})
    _log.info("request_validation_failed", error_count=len(errors))
    return _envelope(
        request,
        422,
        ErrorCode.VALIDATION_ERROR,
        "Request validation failed",
        {"errors": errors},
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    _log.warning("rate_limited", limit=str(exc.detail))
    return _envelope(
        request,
        429,
        ErrorCode.RATE_LIMITED,
        "Too many requests",
        {"limit": str(exc.detail)},
        headers={"Retry-After": "60"},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Never leaks internal detail to the client."""
    _log.exception("unhandled_exception", exc_info=exc)
    return _envelope(
        request, 500, ErrorCode.INTERNAL_ERROR, "An unexpected internal error occurred."
    )
