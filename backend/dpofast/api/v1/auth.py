"""Authentication and account API endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter
from jose import JWTError
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.api.deps import Audit, CurrentUser, DbSession
from dpofast.config.settings import get_settings
from dpofast.core.errors import AuthError, ConflictError, ErrorCode, ForbiddenError
from dpofast.core.security import (
    TokenType,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from dpofast.db.models.company import CompanyProfile
from dpofast.db.models.user import Role, RoleEnum, User
from dpofast.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserOut,
)

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _tokens(user: User) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(subject=user.id, role=user.role.name),
        refresh_token=create_refresh_token(subject=user.id),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


async def _onboarded(db: AsyncSession, user: User) -> bool:
    result = await db.execute(
        select(CompanyProfile.is_completed).where(CompanyProfile.user_id == user.id)
    )
    return bool(result.scalar_one_or_none())


async def ensure_identity_available(
    db: AsyncSession, username: str | None, email: str | None, exclude_id: str | None = None
) -> None:
    """Raise 409 when another account already uses the username or e-mail."""
    if username is not None:
        query = select(User.id).where(User.username == username)
        if exclude_id:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError(ErrorCode.AUTH_USERNAME_TAKEN, "Username is already taken")
    if email is not None:
        query = select(User.id).where(User.email == email)
        if exclude_id:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError(ErrorCode.AUTH_EMAIL_TAKEN, "E-mail is already registered")


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=201,
    summary="Register a new company account",
)
async def register(body: RegisterRequest, db: DbSession, audit: Audit) -> TokenResponse:
    """Create a regular user account and sign it in."""
    if not get_settings().allow_registration:
        raise ForbiddenError(
            "Self-registration is disabled", code=ErrorCode.AUTH_REGISTRATION_DISABLED
        )
    await ensure_identity_available(db, body.username, body.email)

    role = (await db.execute(select(Role).where(Role.name == RoleEnum.USER.value))).scalar_one()
    user = User(
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
        company=body.company,
        role_id=role.id,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user, ["role"])

    await audit.log(event_type="auth.registered", actor=user, entity_type="User", entity_id=user.id)
    await db.commit()

    _log.info("user_registered", user_id=user.id)
    return _tokens(user)


@router.post("/login", response_model=TokenResponse, summary="Obtain access and refresh tokens")
async def login(body: LoginRequest, db: DbSession, audit: Audit) -> TokenResponse:
    """Authenticate with username or e-mail plus password."""
    identifier = body.username.strip()
    result = await db.execute(
        select(User).where(
            or_(User.username == identifier, User.email == identifier.lower()),
            User.deleted_at.is_(None),
        )
    )
    user: User | None = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.password_hash):
        _log.warning("login_failed", username=identifier)
        raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS, "Invalid username or password")

    if not user.is_active:
        raise AuthError(ErrorCode.AUTH_USER_INACTIVE, "Account is deactivated")

    await db.refresh(user, ["role"])
    await audit.log(event_type="auth.login", actor=user, entity_type="User", entity_id=user.id)
    await db.commit()

    _log.info("login_success", username=user.username, role=user.role.name)
    return _tokens(user)


@router.post("/refresh", response_model=TokenResponse, summary="Refresh access token")
async def refresh_token(body: RefreshRequest, db: DbSession) -> TokenResponse:
    """Exchange a valid refresh token for a new access token."""
    try:
        payload = decode_token(body.refresh_token, TokenType.REFRESH)
    except JWTError as exc:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Refresh token invalid") from exc

    user = await db.get(User, payload["sub"])
    if user is None or user.is_deleted or not user.is_active:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "User not found")

    await db.refresh(user, ["role"])
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(subject=user.id, role=user.role.name),
        refresh_token=body.refresh_token,
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


@router.get("/me", response_model=UserOut, summary="Current user profile")
async def get_me(current_user: CurrentUser, db: DbSession) -> UserOut:
    return UserOut.from_user(current_user, await _onboarded(db, current_user))


@router.put("/profile", response_model=UserOut, summary="Update own profile")
async def update_profile(
    body: ProfileUpdate, current_user: CurrentUser, db: DbSession, audit: Audit
) -> UserOut:
    changes = body.model_dump(exclude_unset=True)
    if changes.get("email") is not None and changes["email"] != current_user.email:
        await ensure_identity_available(db, None, changes["email"], exclude_id=current_user.id)

    for field, value in changes.items():
        if field == "company":
            current_user.company = value
        elif value is not None:
            setattr(current_user, field, value.strip())

    await audit.log(
        event_type="auth.profile_updated",
        actor=current_user,
        entity_type="User",
        entity_id=current_user.id,
        payload={"fields": sorted(changes)},
    )
    await db.commit()
    return UserOut.from_user(current_user, await _onboarded(db, current_user))


@router.post("/change-password", status_code=204, summary="Change own password")
async def change_password(
    body: ChangePasswordRequest, current_user: CurrentUser, db: DbSession, audit: Audit
) -> None:
    if not verify_password(body.current_password, current_user.password_hash):
        raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS, "Current password is incorrect")

    current_user.password_hash = hash_password(body.new_password)
    await audit.log(
        event_type="auth.password_changed",
        actor=current_user,
        entity_type="User",
        entity_id=current_user.id,
    )
    await db.commit()
