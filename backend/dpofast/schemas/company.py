"""Company profile (onboarding) and sector schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from dpofast.db.models.company import CompanySize, EmployeeCountType


def _clean_names(values: list[str]) -> list[str]:
    """Trim names and drop blanks and case-insensitive repeats."""
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        name = value.strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            out.append(name)
    return out


class CompanyProfileCreate(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=255)
    departments: list[str] = Field(..., min_length=1)
    sectors: list[str] = Field(..., min_length=1)
    custom_sectors: list[str] = Field(default_factory=list)
    company_size: CompanySize | None = None
    employee_count: str | None = Field(default=None, max_length=50)
    employee_count_type: EmployeeCountType | None = None
    industry: str | None = Field(default=None, max_length=255)
    primary_contact: str = Field(..., min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=2000)

    @field_validator("departments", "sectors")
    @classmethod
    def at_least_one_name(cls, v: list[str]) -> list[str]:
        cleaned = _clean_names(v)
        if not cleaned:
            raise ValueError("At least one non-blank name is required")
        return cleaned

    @field_validator("custom_sectors")
    @classmethod
    def clean_custom(cls, v: list[str]) -> list[str]:
        return _clean_names(v)


class CompanyProfileUpdate(BaseModel):
    company_name: str | None = Field(default=None, min_length=1, max_length=255)
    departments: list[str] | None = None
    sectors: list[str] | None = None
    custom_sectors: list[str] | None = None
    company_size: CompanySize | None = None
    employee_count: str | None = Field(default=None, max_length=50)
    employee_count_type: EmployeeCountType | None = None
    industry: str | None = Field(default=None, max_length=255)
    primary_contact: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=2000)

    @field_validator("departments", "sectors")
    @classmethod
    def non_empty_when_given(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        cleaned = _clean_names(v)
        if not cleaned:
            raise ValueError("At least one non-blank name is required")
        return cleaned

    @field_validator("custom_sectors")
    @classmethod
    def clean_custom(cls, v: list[str] | None) -> list[str] | None:
        return _clean_names(v) if v is not None else v


class CompanyProfileOut(BaseModel):
    id: str
    user_id: str
    company_name: str
    departments: list[str]
    sectors: list[str]
    custom_sectors: list[str]
    company_size: str | None
    employee_count: str | None
    employee_count_type: str | None
    industry: str | None
    primary_contact: str
    phone: str | None
    address: str | None
    is_completed: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Sectors ────────────────────────────────────────────────────────────── #


class SectorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Sector name must not be blank")
        return v.strip()


class SectorUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("Sector name must not be blank")
        return v.strip() if v else v


class SectorOut(BaseModel):
    id: str
    name: str
    description: str | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SectorImportResponse(BaseModel):
    imported_count: int
    sectors: list[SectorOut]
    message: str
