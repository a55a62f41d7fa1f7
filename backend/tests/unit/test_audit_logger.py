"""Unit tests for dpofast.services.audit.logger (hash chain integrity)."""
import pytest
from sqlalchemy import select

from dpofast.db.models.audit import AuditEvent
from dpofast.services.audit.logger import AuditLogger
from tests.conftest import create_user

pytestmark = pytest.mark.asyncio


async def _create_events(db_session, n: int = 3, actor=None) -> list[AuditEvent]:
    """Log n sequential audit events and return them in chain order."""
    logger = AuditLogger(db_session)
    for i in range(n):
        await logger.log(
            event_type="test.event",
            actor=actor,
            entity_type="Document",
            entity_id=f"doc-{i}",
            payload={"index": i},
        )
    result = await db_session.execute(select(AuditEvent).order_by(AuditEvent.sequence_no))
    return list(result.scalars().all())


# ─── Basic creation ───────────────────────────────────────────────────────────

async def test_log_creates_audit_event(db_session):
    events = await _create_events(db_session, n=1)
    assert len(events) == 1
    assert events[0].event_type == "test.event"
    assert len(events[0].event_hash) == 64  # SHA-256 hex


async def test_log_records_actor(db_session, session_factory):
    user = await create_user(session_factory, "auditor")
    events = await _create_events(db_session, n=1, actor=user)
    assert events[0].actor_id == user.id
    assert events[0].actor_username == "auditor"


async def test_sequence_numbers_increase_by_one(db_session):
    events = await _create_events(db_session, n=3)
    assert [e.sequence_no for e in events] == [1, 2, 3]


# ─── Hash chain linkage ───────────────────────────────────────────────────────

async def test_first_event_has_no_prev_hash(db_session):
    events = await _create_events(db_session, n=1)
    assert events[0].prev_hash is None


async def test_chain_is_linked(db_session):
    events = await _create_events(db_session, n=3)
    assert events[1].prev_hash == events[0].event_hash
    assert events[2].prev_hash == events[1].event_hash


# ─── verify_chain ─────────────────────────────────────────────────────────────

async def test_verify_chain_passes_on_valid_chain(db_session):
    await _create_events(db_session, n=3)
    assert await AuditLogger.verify_chain(db_session) == (True, None)


async def test_verify_chain_passes_on_empty_log(db_session):
    assert await AuditLogger.verify_chain(db_session) == (True, None)


async def test_verify_chain_detects_tampered_payload(db_session):
    events = await _create_events(db_session, n=3)
    events[1].payload_json = '{"index": 99}'
    await db_session.flush()

    is_valid, broken_at = await AuditLogger.verify_chain(db_session)
    assert is_valid is False
    assert broken_at == events[1].id


async def test_verify_chain_detects_deleted_event(db_session):
    events = await _create_events(db_session, n=3)
    await db_session.delete(events[1])
    await db_session.flush()

    is_valid, broken_at = await AuditLogger.verify_chain(db_session)
    assert is_valid is False
    assert broken_at == events[2].id
