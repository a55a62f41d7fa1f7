"""Auth schemas: registration, login, tokens and the caller's profile."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from dpofast.core.security import check_password_strength
from dpofast.db.models.user import User

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100, pattern=r"^[a-zA-Z0-9_.\-]+$")
    email: str = Field(..., max_length=255, pattern=_EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=256)
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    company: str | None = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return check_password_strength(v)


class LoginRequest(BaseModel):
    """``username`` accepts either the username or the e-mail address."""

    username: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class RefreshRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=256)

    @field_validator("new_password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return check_password_strength(v)


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255, pattern=_EMAIL_PATTERN)
    company: str | None = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str | None) -> str | None:
        return v.strip().lower() if v else v


class UserOut(BaseModel):
    id: str
    username: str
    email: str
    first_name: str
    last_name: str
    company: str | None
    role: str
    is_active: bool
    subscription_plan: str
    subscription_status: str
    onboarding_completed: bool = False
    created_at: datetime

    @classmethod
    def from_user(cls, user: User, onboarding_completed: bool = False) -> UserOut:
        """Requires ``user.role`` to be loaded."""
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            company=user.company,
            role=user.role.name,
            is_active=user.is_active,
            subscription_plan=user.subscription_plan,
            subscription_status=user.subscription_status,
            onboarding_completed=onboarding_completed,
            created_at=user.created_at,
        )
