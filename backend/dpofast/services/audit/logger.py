"""
Immutable audit logger.

Every event is SHA-256 hashed, including the hash of the immediately
preceding event. This forms a cryptographic hash chain that makes
tampering with historical records detectable.

The chain is linear (single sequence). Writes within one process are
serialised through an asyncio lock; the unique ``sequence_no`` constraint
rejects a racing writer from another process.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dpofast.db.models.audit import AuditEvent
from dpofast.db.models.user import User

_log = structlog.get_logger(__name__)

_LOCK = asyncio.Lock()


def _canonical_timestamp(value: datetime) -> str:
    # PostgreSQL returns aware UTC values, SQLite returns naive ones
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value.isoformat()


def _compute_event_hash(
    sequence_no: int,
    event_type: str,
    actor_id: str | None,
    entity_type: str | None,
    entity_id: str | None,
    payload_json: str | None,
    created_at: datetime,
    prev_hash: str | None,
) -> str:
    """Compute the SHA-256 hash for an audit event."""
    components = {
        "sequence_no": sequence_no,
        "event_type": event_type,
        "actor_id": actor_id or "",
        "entity_type": entity_type or "",
        "entity_id": entity_id or "",
        "payload_json": payload_json or "",
        "created_at": _canonical_timestamp(created_at),
        "prev_hash": prev_hash or "",
    }
    canonical = json.dumps(components, sort_keys=True, ensure_ascii=True)
    return hashlib.sha256(canonical.encode()).hexdigest()


class AuditLogger:
    """
    Service for writing immutable audit events.

    Usage:
        audit = AuditLogger(db, request)
        await audit.log(
            event_type="document.uploaded",
            actor=current_user,
            entity_type="Document",
            entity_id=doc.id,
            payload={"filename": doc.original_filename},
        )

    When a request is given, its correlation id, client address and
    user agent are recorded with every event.
    """

    def __init__(self, db: AsyncSession, request: Request | None = None) -> None:
        self._db = db
        self._correlation_id: str | None = None
        self._ip_address: str | None = None
        self._user_agent: str | None = None
        if request is not None:
            self._correlation_id = getattr(request.state, "correlation_id", None)
            self._ip_address = request.client.host if request.client else None
            user_agent = request.headers.get("user-agent")
            self._user_agent = user_agent[:500] if user_agent else None

    async def log(
        self,
        event_type: str,
        actor: User | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Write a single audit event to the database.

        The lock ensures prev_hash is read and written atomically even
        under concurrent requests, preserving chain integrity.
        """
        async with _LOCK:
            last = await self._get_last_event()
            sequence_no = (last[0] + 1) if last else 1
            prev_hash = last[1] if last else None
            created_at = datetime.now(UTC)
            payload_json = (
                json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
                if payload
                else None
            )
            actor_id = actor.id if actor else None

            event_hash = _compute_event_hash(
                sequence_no=sequence_no,
                event_type=event_type,
                actor_id=actor_id,
                entity_type=entity_type,
                entity_id=entity_id,
                payload_json=payload_json,
                created_at=created_at,
                prev_hash=prev_hash,
            )

            event = AuditEvent(
                sequence_no=sequence_no,
                event_type=event_type,
                actor_id=actor_id,
                actor_username=actor.username if actor else None,
                entity_type=entity_type,
                entity_id=entity_id,
                correlation_id=self._correlation_id,
                ip_address=self._ip_address,
                user_agent=self._user_agent,
                payload_json=payload_json,
                event_hash=event_hash,
                prev_hash=prev_hash,
                created_at=created_at,
            )
            self._db.add(event)
            await self._db.flush()

            _log.debug(
                "audit_event_written",
                event_type=event_type,
                actor_id=actor_id,
                entity_id=entity_id,
                sequence_no=sequence_no,
            )
            return event

    async def _get_last_event(self) -> tuple[int, str] | None:
        """Fetch (sequence_no, event_hash) of the most recently written event."""
        result = await self._db.execute(
            select(AuditEvent.sequence_no, AuditEvent.event_hash)
            .order_by(AuditEvent.sequence_no.desc())
            .limit(1)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    @staticmethod
    async def verify_chain(db: AsyncSession) -> tuple[bool, str | None]:
        """
        Verify the integrity of the audit hash chain.

        Returns:
            (True, None) if chain is intact.
            (False, event_id) of the first event where the chain is broken.
        """
        result = await db.execute(select(AuditEvent).order_by(AuditEvent.sequence_no.asc()))
        events: list[AuditEvent] = list(result.scalars().all())

        prev_hash: str | None = None
        for event in events:
            expected = _compute_event_hash(
                sequence_no=event.sequence_no,
                event_type=event.event_type,
                actor_id=event.actor_id,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                payload_json=event.payload_json,
                created_at=event.created_at,
                prev_hash=prev_hash,
            )
            if expected != event.event_hash or event.prev_hash != prev_hash:
                _log.error(
                    "audit_chain_broken",
                    event_id=event.id,
                    expected_hash=expected,
                    stored_hash=event.event_hash,
                )
                return False, event.id

            prev_hash = event.event_hash

        return True, None
