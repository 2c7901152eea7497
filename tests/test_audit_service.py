"""
Tests for Audit Service
Unit tests for the audited() transaction wrapper with a mocked sink
"""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from rbac_admin.core.context import SessionContext
from rbac_admin.core.exceptions import ConflictError
from rbac_admin.services.audit import AuditEvent, AuditService, AuditSink


# ==================== Fixtures ====================

@pytest.fixture
def calls():
    return []


@pytest.fixture
def mock_db(calls):
    """Create a mock async database session that records commit/rollback order"""
    db = AsyncMock()
    db.commit = AsyncMock(side_effect=lambda: calls.append("commit"))
    db.rollback = AsyncMock(side_effect=lambda: calls.append("rollback"))
    return db


@pytest.fixture
def sink(calls):
    sink = AsyncMock(spec=AuditSink)
    sink.record = AsyncMock(side_effect=lambda db, event: calls.append(("record", event.status)))
    return sink


@pytest.fixture
def audit(sink):
    return AuditService(sink=sink)


@pytest.fixture
def actor():
    return SessionContext(user_id=uuid4(), session_id=uuid4(), email="operator@example.com", ip_address="10.0.0.7")


# ==================== audited() ====================

@pytest.mark.asyncio
async def test_success_records_then_commits_once(audit, mock_db, sink, actor, calls):
    async with audit.audited(mock_db, actor, "ROLE_CREATE", "role", "EDITOR") as event:
        event.after = {"role_key": "EDITOR"}

    assert calls == [("record", "SUCCESS"), "commit"]
    recorded = sink.record.call_args.args[1]
    assert recorded.actor_id == actor.actor_id
    assert recorded.ip_address == "10.0.0.7"
    assert recorded.after == {"role_key": "EDITOR"}
    mock_db.rollback.assert_not_called()


@pytest.mark.asyncio
async def test_failure_rolls_back_records_and_reraises(audit, mock_db, sink, actor, calls):
    with pytest.raises(ConflictError, match="in use"):
        async with audit.audited(mock_db, actor, "ROLE_DELETE", "role", "EDITOR") as event:
            event.after = {"partial": True}
            raise ConflictError("Role is in use")

    assert calls == ["rollback", ("record", "FAILURE"), "commit"]
    recorded = sink.record.call_args.args[1]
    assert recorded.error_message == "Role is in use"
    assert recorded.after is None


@pytest.mark.asyncio
async def test_unexpected_errors_are_not_audited(audit, mock_db, sink, actor):
    with pytest.raises(RuntimeError):
        async with audit.audited(mock_db, actor, "ROLE_CREATE", "role"):
            raise RuntimeError("boom")

    sink.record.assert_not_called()
    mock_db.commit.assert_not_called()


def test_system_actor_has_no_actor_id():
    event = AuditEvent.for_actor(None, action="BOOTSTRAP", target_type="user")

    assert event.actor_id is None
    assert event.actor_type == "SYSTEM"
