"""
Structured error taxonomy for DPO Fast.

Every application error has:
  - A stable error code (prefixed by domain)
  - An HTTP status code
  - A human-readable message
  - An optional detail dict for machine consumers

No internal state (stack traces, DB internals) is ever surfaced to clients.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable, versioned error codes. Never reuse a retired code."""

    # Auth
    AUTH_INVALID_CREDENTIALS = "AUTH_001"
    AUTH_TOKEN_EXPIRED = "AUTH_002"
    AUTH_TOKEN_INVALID = "AUTH_003"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_004"
    AUTH_USER_INACTIVE = "AUTH_005"
    AUTH_REGISTRATION_DISABLED = "AUTH_006"
    AUTH_USERNAME_TAKEN = "AUTH_007"
    AUTH_EMAIL_TAKEN = "AUTH_008"

    # Onboarding / company profile
    ONBOARDING_REQUIRED = "ONB_001"
    ONBOARDING_PROFILE_EXISTS = "ONB_002"

    # Sectors
    SECTOR_NOT_FOUND = "SEC_001"
    SECTOR_NAME_TAKEN = "SEC_002"

    # Questionnaire
    QUESTIONNAIRE_INVALID_ANSWER = "QST_001"
    QUESTIONNAIRE_INCOMPLETE = "QST_002"
    QUESTIONNAIRE_CATALOG_INVALID = "QST_003"

    # Documents
    DOC_NOT_FOUND = "DOC_001"
    DOC_MIME_REJECTED = "DOC_003"
    DOC_TOO_LARGE = "DOC_004"
    DOC_EMPTY = "DOC_005"
    DOC_EXTENSION_MISMATCH = "DOC_006"
    DOC_PREVIEW_UNSUPPORTED = "DOC_007"
    DOC_HASH_DUPLICATE = "DOC_008"
    DOC_ALREADY_REVIEWED = "DOC_009"

    # Compliance tasks
    TASK_NOT_FOUND = "TASK_001"
    TASK_INVALID_TRANSITION = "TASK_002"
    TASK_EVIDENCE_REQUIRED = "TASK_003"
    TASK_LOCKED = "TASK_004"
    TASK_COMMENTS_REQUIRED = "TASK_005"

    # Reports
    REPORT_NOT_FOUND = "RPT_001"
    REPORT_NO_DATA = "RPT_002"
    REPORT_FILE_MISSING = "RPT_003"

    # Plans and billing
    PLAN_LIMIT_REACHED = "PLAN_001"
    BILLING_UNAVAILABLE = "BILL_001"
    BILLING_PRICE_MISSING = "BILL_002"
    BILLING_WEBHOOK_INVALID = "BILL_003"
    BILLING_NO_SUBSCRIPTION = "BILL_004"
    BILLING_PROVIDER_ERROR = "BILL_005"

    # Notifications
    NOTIFICATION_NOT_FOUND = "NOTIF_001"

    # Admin
    ADMIN_SELF_ACTION = "ADM_001"
    ADMIN_ROLE_UNCHANGED = "ADM_002"

    # Generic
    VALIDATION_ERROR = "GEN_001"
    INTERNAL_ERROR = "GEN_002"
    NOT_FOUND = "GEN_003"
    RATE_LIMITED = "GEN_004"


class AppError(Exception):
    """Base class for all application errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        http_status: int = 500,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.detail = detail or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "detail": self.detail,
            }
        }


# ── Typed convenience subclasses ──────────────────────────────────────── #


class NotFoundError(AppError):
    def __init__(
        self, entity: str, entity_id: str | None = None, code: ErrorCode = ErrorCode.NOT_FOUND
    ) -> None:
        detail = {"entity": entity}
        if entity_id:
            detail["id"] = entity_id
        super().__init__(
            code=code,
            message=f"{entity} not found",
            http_status=404,
            detail=detail,
        )


class AuthError(AppError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message, http_status=401)


class ForbiddenError(AppError):
    def __init__(
        self,
        message: str = "Insufficient permissions",
        code: ErrorCode = ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
    ) -> None:
        super().__init__(code=code, message=message, http_status=403)


class ValidationError(AppError):
    def __init__(
        self,
        message: str,
        detail: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ) -> None:
        super().__init__(code=code, message=message, http_status=422, detail=detail)


class ConflictError(AppError):
    def __init__(
        self, code: ErrorCode, message: str, detail: dict[str, Any] | None = None
    ) -> None:
        super().__init__(code=code, message=message, http_status=409, detail=detail)


class PlanLimitError(AppError):
    """Raised when an action would exceed the caller's subscription plan."""

    def __init__(self, resource: str, current: int, maximum: int, plan: str) -> None:
        super().__init__(
            code=ErrorCode.PLAN_LIMIT_REACHED,
            message=f"Plan limit reached for {resource}",
            http_status=403,
            detail={
                "resource": resource,
                "current": current,
                "max": maximum,
                "plan": plan,
                "upgrade_required": True,
            },
        )


class ServiceUnavailableError(AppError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message, http_status=503)
