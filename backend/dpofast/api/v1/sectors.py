"""Company sector API endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.api.deps import Audit, CurrentUser, DbSession, get_company_profile
from dpofast.core.errors import ConflictError, ErrorCode, NotFoundError
from dpofast.db.models.company import CompanyProfile, CompanySector
from dpofast.db.models.user import User
from dpofast.schemas.company import (
    SectorCreate,
    SectorImportResponse,
    SectorOut,
    SectorUpdate,
)

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/sectors", tags=["sectors"])


async def load_sector(
    db: AsyncSession, user: User, sector_id: str, active_only: bool = True
) -> CompanySector:
    """Fetch one of the caller's sectors; other tenants' sectors are 404."""
    sector = await db.get(CompanySector, sector_id)
    if sector is None or sector.user_id != user.id or (active_only and not sector.is_active):
        raise NotFoundError("CompanySector", sector_id, code=ErrorCode.SECTOR_NOT_FOUND)
    return sector


async def _active_names(db: AsyncSession, user_id: str) -> dict[str, str]:
    """Lower-cased name to id for every active sector of the tenant."""
    result = await db.execute(
        select(CompanySector.id, CompanySector.name).where(
            CompanySector.user_id == user_id, CompanySector.is_active.is_(True)
        )
    )
    return {name.lower(): sector_id for sector_id, name in result.all()}


async def _ensure_name_free(
    db: AsyncSession, user_id: str, name: str, exclude_id: str | None = None
) -> None:
    owner = (await _active_names(db, user_id)).get(name.lower())
    if owner is not None and owner != exclude_id:
        raise ConflictError(
            ErrorCode.SECTOR_NAME_TAKEN,
            f"An active sector named '{name}' already exists",
            detail={"sector_id": owner},
        )


@router.post("", response_model=SectorOut, status_code=201, summary="Create a sector")
async def create_sector(
    body: SectorCreate, current_user: CurrentUser, db: DbSession, audit: Audit
) -> SectorOut:
    await _ensure_name_free(db, current_user.id, body.name)
    sector = CompanySector(
        user_id=current_user.id, name=body.name, description=body.description, is_active=True
    )
    db.add(sector)
    await db.flush()
    await audit.log(
        event_type="sector.created",
        actor=current_user,
        entity_type="CompanySector",
        entity_id=sector.id,
        payload={"name": sector.name},
    )
    await db.commit()
    return SectorOut.model_validate(sector)


@router.get("", response_model=list[SectorOut], summary="List active sectors")
async def list_sectors(current_user: CurrentUser, db: DbSession) -> list[SectorOut]:
    result = await db.execute(
        select(CompanySector)
        .where(CompanySector.user_id == current_user.id, CompanySector.is_active.is_(True))
        .order_by(CompanySector.created_at)
    )
    return [SectorOut.model_validate(s) for s in result.scalars().all()]


@router.post(
    "/import-from-profile",
    response_model=SectorImportResponse,
    summary="Create sectors from the company profile",
)
async def import_sectors_from_profile(
    current_user: CurrentUser,
    profile: Annotated[CompanyProfile | None, Depends(get_company_profile)],
    db: DbSession,
    audit: Audit,
) -> SectorImportResponse:
    """
    Union of the profile's departments, sectors and custom sectors.

    Names are trimmed; blanks and names matching an existing active sector
    (case-insensitive) are skipped.
    """
    if profile is None:
        raise NotFoundError("CompanyProfile")

    taken = set(await _active_names(db, current_user.id))
    created: list[CompanySector] = []
    for raw in profile.all_sector_names:
        name = raw.strip()
        if not name or name.lower() in taken:
            continue
        taken.add(name.lower())
        sector = CompanySector(user_id=current_user.id, name=name, is_active=True)
        db.add(sector)
        created.append(sector)
    await db.flush()

    if created:
        await audit.log(
            event_type="sector.imported",
            actor=current_user,
            entity_type="CompanyProfile",
            entity_id=profile.id,
            payload={"names": [s.name for s in created]},
        )
    await db.commit()

    _log.info("sectors_imported", count=len(created))
    return SectorImportResponse(
        imported_count=len(created),
        sectors=[SectorOut.model_validate(s) for s in created],
        message=(
            f"{len(created)} setor(es) importado(s) do perfil da empresa"
            if created
            else "Todos os setores do perfil já existem"
        ),
    )


@router.get("/{sector_id}", response_model=SectorOut, summary="Get a sector")
async def get_sector(sector_id: str, current_user: CurrentUser, db: DbSession) -> SectorOut:
    return SectorOut.model_validate(
        await load_sector(db, current_user, sector_id, active_only=False)
    )


@router.put("/{sector_id}", response_model=SectorOut, summary="Update a sector")
async def update_sector(
    sector_id: str,
    body: SectorUpdate,
    current_user: CurrentUser,
    db: DbSession,
    audit: Audit,
) -> SectorOut:
    sector = await load_sector(db, current_user, sector_id, active_only=False)
    changes = body.model_dump(exclude_unset=True)

    new_name = changes.get("name") or sector.name
    becomes_active = changes.get("is_active", sector.is_active)
    if becomes_active and (new_name.lower() != sector.name.lower() or not sector.is_active):
        await _ensure_name_free(db, current_user.id, new_name, exclude_id=sector.id)

    if changes.get("name"):
        sector.name = changes["name"]
    if "description" in changes:
        sector.description = changes["description"]
    if changes.get("is_active") is not None:
        sector.is_active = changes["is_active"]

    await audit.log(
        event_type="sector.updated",
        actor=current_user,
        entity_type="CompanySector",
        entity_id=sector.id,
        payload={"fields": sorted(changes)},
    )
    await db.commit()
    return SectorOut.model_validate(sector)


@router.delete("/{sector_id}", status_code=204, summary="Deactivate a sector")
async def delete_sector(
    sector_id: str, current_user: CurrentUser, db: DbSession, audit: Audit
) -> None:
    sector = await load_sector(db, current_user, sector_id)
    sector.is_active = False
    await audit.log(
        event_type="sector.deactivated",
        actor=current_user,
        entity_type="CompanySector",
        entity_id=sector.id,
    )
    await db.commit()
