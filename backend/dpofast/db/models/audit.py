"""
Immutable audit event model.

Events form a hash chain: each event records the SHA-256 hash of the
previous event, so silently deleting or editing a historical record
breaks verification. ``sequence_no`` gives the chain a total order that
does not depend on clock resolution.

The chain can be verified via AuditLogger.verify_chain().
"""

from __future__ import annotations

from sqlalchemy import Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dpofast.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class AuditEvent(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Single immutable audit event."""

    __tablename__ = "audit_events"
    __table_args__ = (
        UniqueConstraint("event_hash", name="uq_audit_event_hash"),
        UniqueConstraint("sequence_no", name="uq_audit_sequence_no"),
        Index("ix_audit_events_actor_entity", "actor_id", "entity_type", "entity_id"),
    )

    sequence_no: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    actor_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    actor_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    entity_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    correlation_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    payload_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Hash of this event (covers all fields except event_hash itself)
    event_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    # Hash of the previous event in the chain; null for the genesis event
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditEvent #{self.sequence_no} {self.event_type} [{self.actor_username}]>"
