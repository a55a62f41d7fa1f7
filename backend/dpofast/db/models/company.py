"""Company onboarding profile and the sectors questionnaires are scoped to."""

from __future__ import annotations

from enum import StrEnum

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dpofast.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class CompanySize(StrEnum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class EmployeeCountType(StrEnum):
    EXACT = "exact"
    RANGE = "range"


class CompanyProfile(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One profile per tenant; completing it finishes onboarding."""

    __tablename__ = "company_profiles"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    departments: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    sectors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    custom_sectors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    company_size: Mapped[str | None] = mapped_column(String(20), nullable=True)
    employee_count: Mapped[str | None] = mapped_column(String(50), nullable=True)
    employee_count_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(255), nullable=True)
    primary_contact: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def all_sector_names(self) -> list[str]:
        return [*self.departments, *self.sectors, *self.custom_sectors]

    def __repr__(self) -> str:
        return f"<CompanyProfile {self.company_name}>"


class CompanySector(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A tenant-defined business area. Deactivated rather than deleted."""

    __tablename__ = "company_sectors"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    def __repr__(self) -> str:
        return f"<CompanySector {self.name}>"
