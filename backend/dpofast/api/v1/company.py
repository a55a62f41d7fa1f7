"""Company profile (onboarding) API endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends

from dpofast.api.deps import Audit, CurrentUser, DbSession, get_company_profile
from dpofast.core.errors import ConflictError, ErrorCode, NotFoundError
from dpofast.db.models.company import CompanyProfile
from dpofast.schemas.company import (
    CompanyProfileCreate,
    CompanyProfileOut,
    CompanyProfileUpdate,
)

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/company-profile", tags=["company"])

ProfileOrNone = Annotated[CompanyProfile | None, Depends(get_company_profile)]


def _require(profile: CompanyProfile | None) -> CompanyProfile:
    if profile is None:
        raise NotFoundError("CompanyProfile")
    return profile


@router.post(
    "",
    response_model=CompanyProfileOut,
    status_code=201,
    summary="Complete onboarding with the company profile",
)
async def create_company_profile(
    body: CompanyProfileCreate,
    current_user: CurrentUser,
    existing: ProfileOrNone,
    db: DbSession,
    audit: Audit,
) -> CompanyProfileOut:
    if existing is not None:
        raise ConflictError(
            ErrorCode.ONBOARDING_PROFILE_EXISTS,
            "A company profile already exists for this account",
            detail={"profile_id": existing.id},
        )

    profile = CompanyProfile(user_id=current_user.id, is_completed=True, **body.model_dump())
    db.add(profile)
    await db.flush()

    await audit.log(
        event_type="company.onboarded",
        actor=current_user,
        entity_type="CompanyProfile",
        entity_id=profile.id,
        payload={"company_name": profile.company_name, "company_size": profile.company_size},
    )
    await db.commit()

    _log.info("company_profile_created", profile_id=profile.id)
    return CompanyProfileOut.model_validate(profile)


@router.get("", response_model=CompanyProfileOut, summary="Get the company profile")
async def get_profile(profile: ProfileOrNone) -> CompanyProfileOut:
    return CompanyProfileOut.model_validate(_require(profile))


@router.put("", response_model=CompanyProfileOut, summary="Update the company profile")
async def update_company_profile(
    body: CompanyProfileUpdate,
    current_user: CurrentUser,
    profile: ProfileOrNone,
    db: DbSession,
    audit: Audit,
) -> CompanyProfileOut:
    """Partial update: only fields present in the body are changed."""
    profile = _require(profile)
    changes = body.model_dump(exclude_unset=True)
    for field in ("company_name", "primary_contact", "departments", "sectors", "custom_sectors"):
        # required columns
        if field in changes and changes[field] is None:
            del changes[field]
    for field, value in changes.items():
        setattr(profile, field, value)

    await audit.log(
        event_type="company.profile_updated",
        actor=current_user,
        entity_type="CompanyProfile",
        entity_id=profile.id,
        payload={"fields": sorted(changes)},
    )
    await db.commit()
    return CompanyProfileOut.model_validate(profile)
