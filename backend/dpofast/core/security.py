"""
Password hashing and policy, JWT creation and verification.

Access and refresh tokens share one signing key and are told apart by
their ``type`` claim. Secrets are never logged.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from enum import StrEnum

import bcrypt
from jose import JWTError, jwt

from dpofast.config.settings import get_settings


# ── Password ──────────────────────────────────────────────────────────── #


def _normalize(plain: str) -> bytes:
    # bcrypt truncates at 72 bytes; hashing first keeps long passphrases intact
    return hashlib.sha256(plain.encode("utf-8")).hexdigest().encode("utf-8")


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_normalize(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verify a plaintext password against a stored hash.

    Returns False on a malformed hash instead of raising.
    """
    try:
        return bcrypt.checkpw(_normalize(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


def check_password_strength(value: str) -> str:
    """Shared complexity policy for registration and password changes."""
    if not any(c.isupper() for c in value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in value):
        raise ValueError("Password must contain at least one digit")
    return value


# ── JWT ───────────────────────────────────────────────────────────────── #

TOKEN_ISSUER = "dpofast"


class TokenType(StrEnum):
    ACCESS = "access"
    REFRESH = "refresh"


def _now_utc() -> datetime:
    return datetime.now(UTC)


def _encode(claims: dict[str, object], lifetime: timedelta) -> str:
    settings = get_settings()
    now = _now_utc()
    payload: dict[str, object] = {
        "iss": TOKEN_ISSUER,
        "iat": now,
        "exp": now + lifetime,
        "jti": secrets.token_hex(16),
        **claims,
    }
    return jwt.encode(
        payload,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(
    subject: str,
    role: str,
    extra_claims: dict[str, object] | None = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        subject: The user ID (``sub`` claim).
        role: ``admin`` or ``user``; the API re-reads the role from the
            database on every request, so this is informational for clients.
        extra_claims: Optional additional claims merged into the payload.
    """
    lifetime = timedelta(minutes=get_settings().jwt_access_token_expire_minutes)
    claims: dict[str, object] = {"sub": subject, "role": role, "type": TokenType.ACCESS.value}
    return _encode({**claims, **(extra_claims or {})}, lifetime)


def create_refresh_token(subject: str) -> str:
    """Create a signed JWT refresh token (no role claim)."""
    lifetime = timedelta(days=get_settings().jwt_refresh_token_expire_days)
    return _encode({"sub": subject, "type": TokenType.REFRESH.value}, lifetime)


def decode_token(token: str, expected_type: TokenType | None = None) -> dict[str, object]:
    """
    Decode and validate a JWT issued by this service.

    Raises:
        ExpiredSignatureError: If the token has expired.
        JWTError: If the token is invalid, tampered with, issued elsewhere,
            or not of ``expected_type``.
    """
    settings = get_settings()
    claims: dict[str, object] = jwt.decode(
        token,
        settings.jwt_secret_key.get_secret_value(),
        algorithms=[settings.jwt_algorithm],
        issuer=TOKEN_ISSUER,
    )
    if expected_type is not None and claims.get("type") != expected_type.value:
        raise JWTError(f"Expected a {expected_type.value} token")
    if not claims.get("sub"):
        raise JWTError("Token missing subject")
    return claims


__all__ = [
    "TokenType",
    "check_password_strength",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
    "hash_password",
    "verify_password",
]
