"""
FastAPI dependency providers.

All authentication and authorization logic lives here, not in routes.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dpofast.core.errors import AuthError, ErrorCode, ForbiddenError
from dpofast.core.security import TokenType, decode_token
from dpofast.db.models.company import CompanyProfile
from dpofast.db.models.user import RoleEnum, User
from dpofast.db.session import get_db
from dpofast.services.audit.logger import AuditLogger
from dpofast.services.questionnaire.catalog import Catalog, get_catalog

_log = structlog.get_logger(__name__)
_bearer = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    db: DbSession,
) -> User:
    """
    Validate JWT Bearer token and return the authenticated User.

    Raises AuthError on any JWT problem.
    """
    if credentials is None:
        raise AuthError(
            ErrorCode.AUTH_TOKEN_INVALID, "Authorization header missing or not Bearer type"
        )

    try:
        payload = decode_token(credentials.credentials, TokenType.ACCESS)
    except ExpiredSignatureError as exc:
        raise AuthError(ErrorCode.AUTH_TOKEN_EXPIRED, "Token expired") from exc
    except JWTError as exc:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Token invalid") from exc

    user_id = str(payload["sub"])

    user_result = await db.execute(
        select(User).options(selectinload(User.role)).where(User.id == user_id)
    )
    user = user_result.scalar_one_or_none()
    if user is None or user.is_deleted:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "User not found")

    if not user.is_active:
        raise AuthError(ErrorCode.AUTH_USER_INACTIVE, "Account is deactivated")

    structlog.contextvars.bind_contextvars(user_id=user.id, username=user.username)
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def is_admin(user: User) -> bool:
    return user.role.name == RoleEnum.ADMIN


def require_roles(*roles: RoleEnum):
    """Return a dependency callable that enforces role membership."""

    async def _check(user: CurrentUser) -> User:
        if user.role.name not in [r.value for r in roles]:
            raise ForbiddenError(
                f"This action requires one of: {[r.value for r in roles]}. "
                f"Your role is: {user.role.name}"
            )
        return user

    return _check


AdminUser = Annotated[User, Depends(require_roles(RoleEnum.ADMIN))]


async def get_company_profile(user: CurrentUser, db: DbSession) -> CompanyProfile | None:
    result = await db.execute(select(CompanyProfile).where(CompanyProfile.user_id == user.id))
    return result.scalar_one_or_none()


async def require_onboarding(
    profile: Annotated[CompanyProfile | None, Depends(get_company_profile)],
) -> CompanyProfile:
    """Gate for endpoints that only make sense after onboarding."""
    if profile is None or not profile.is_completed:
        raise ForbiddenError(
            "Complete the company profile before using this feature",
            code=ErrorCode.ONBOARDING_REQUIRED,
        )
    return profile


OnboardedProfile = Annotated[CompanyProfile, Depends(require_onboarding)]


def get_audit_logger(request: Request, db: DbSession) -> AuditLogger:
    return AuditLogger(db, request)


Audit = Annotated[AuditLogger, Depends(get_audit_logger)]
CatalogDep = Annotated[Catalog, Depends(get_catalog)]
