from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from certusflow.contexts.identity.adapters.outbound.persistence.in_memory import (
    InMemoryIdentityTwoFactorAuditLog,
)
from certusflow.contexts.identity.application.ports import TwoFactorAuditLog
from certusflow.contexts.identity.application.ports.clock import IdentityClock
from certusflow.contexts.identity.application.services import (
    ClientContext,
    TwoFactorAuditHooks,
    TwoFactorAuditRecorder,
)
from certusflow.contexts.identity.domain import TwoFactorAuditEvent, TwoFactorAuditEventType
from certusflow.shared_kernel.primitives import UserId

_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
_USER_ID = UserId.from_string("00000000-0000-0000-0000-000000000401")


class _FixedClock(IdentityClock):
    def now(self) -> datetime:
        return _NOW


class _BrokenAuditLog(TwoFactorAuditLog):
    def append(self, *, event: TwoFactorAuditEvent) -> None:
        raise ConnectionError("audit table unavailable")


def test_record_appends_event_with_client_metadata() -> None:
    audit_log = InMemoryIdentityTwoFactorAuditLog()
    recorder = TwoFactorAuditRecorder(audit_log=audit_log, clock=_FixedClock())

    recorder.record(
        user_id=_USER_ID,
        event_type=TwoFactorAuditEventType.LOGIN_FAILED,
        success=False,
        failure_kind="authorization",
        client=ClientContext(ip_address="203.0.113.1", user_agent="curl/8.9.1"),
    )

    (event,) = audit_log.events()
    assert event.user_id == _USER_ID
    assert event.created_at == _NOW
    assert event.failure_kind == "authorization"
    assert (event.ip_address, event.user_agent) == ("203.0.113.1", "curl/8.9.1")


def test_record_drops_failure_kind_for_successful_events() -> None:
    audit_log = InMemoryIdentityTwoFactorAuditLog()
    recorder = TwoFactorAuditRecorder(audit_log=audit_log, clock=_FixedClock())

    recorder.record(
        user_id=_USER_ID,
        event_type=TwoFactorAuditEventType.ENABLED,
        success=True,
        failure_kind="state",
    )

    (event,) = audit_log.events()
    assert event.failure_kind is None
    assert event.ip_address is None


def test_audit_write_failure_is_logged_counted_and_swallowed(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """
    Verify audit sink outage never propagates into the security flow.

    Args:
        caplog: Pytest log capture fixture.
    Returns:
        None.
    Assumptions:
        Recorder is fail-open for logging only.
    Raises:
        AssertionError: If exception escapes or hook is not called.
    Side Effects:
        None.
    """
    failures: list[str] = []
    recorder = TwoFactorAuditRecorder(
        audit_log=_BrokenAuditLog(),
        clock=_FixedClock(),
        hooks=TwoFactorAuditHooks(on_audit_write_failed=lambda: failures.append("failed")),
    )

    with caplog.at_level(logging.ERROR):
        recorder.record(
            user_id=_USER_ID,
            event_type=TwoFactorAuditEventType.DISABLED,
            success=True,
        )

    assert failures == ["failed"]
    assert "identity 2fa audit append failed event_type=disabled" in caplog.text


def test_recorder_requires_audit_log() -> None:
    with pytest.raises(ValueError, match="requires audit_log"):
        TwoFactorAuditRecorder(audit_log=None, clock=_FixedClock())  # type: ignore[arg-type]
