from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import pyotp
import pytest

from certusflow.contexts.identity.adapters.outbound.persistence.in_memory import (
    InMemoryIdentityTwoFactorAuditLog,
    InMemoryIdentityTwoFactorRepository,
)
from certusflow.contexts.identity.adapters.outbound.security.two_factor import (
    AesGcmEnvelopeTwoFactorSecretCipher,
    PyOtpTwoFactorTotpProvider,
    Sha256TwoFactorBackupCodeCodec,
)
from certusflow.contexts.identity.application.ports.clock import IdentityClock
from certusflow.contexts.identity.application.services import (
    ClientContext,
    TotpCodeChecker,
    TwoFactorAuditRecorder,
)
from certusflow.contexts.identity.application.use_cases import (
    DisableTwoFactorTotpUseCase,
    GetTwoFactorStatusUseCase,
    SetupTwoFactorTotpUseCase,
    VerifyTwoFactorTotpUseCase,
)
from certusflow.contexts.identity.domain import TwoFactorAuditEvent, TwoFactorAuditEventType
from certusflow.shared_kernel.primitives import UserId

_KEK_B64 = "cm9laHViLWRldi1pZGVudGl0eS0yZmEta2V5LTAwMDE="
_NOW = datetime(2026, 10, 19, 9, 30, 0, tzinfo=timezone.utc)
_USER_ID = UserId.from_string("00000000-0000-0000-0000-000000000101")


class _MutableClock(IdentityClock):
    """
    Mutable deterministic UTC clock for setup/verify/disable flows.
    """

    def __init__(self, *, now_value: datetime) -> None:
        self._now_value = now_value

    def set_now(self, *, now_value: datetime) -> None:
        self._now_value = now_value

    def now(self) -> datetime:
        return self._now_value


class _Harness:
    """
    Wire 2FA use-cases over in-memory storage and real crypto adapters.
    """

    def __init__(self) -> None:
        self.clock = _MutableClock(now_value=_NOW)
        self.repository = InMemoryIdentityTwoFactorRepository()
        self.audit_log = InMemoryIdentityTwoFactorAuditLog()
        self.cipher = AesGcmEnvelopeTwoFactorSecretCipher(kek_b64=_KEK_B64)
        self.backup_code_codec = Sha256TwoFactorBackupCodeCodec()
        totp_provider = PyOtpTwoFactorTotpProvider()
        audit_recorder = TwoFactorAuditRecorder(audit_log=self.audit_log, clock=self.clock)
        totp_checker = TotpCodeChecker(
            secret_cipher=self.cipher,
            totp_provider=totp_provider,
            clock=self.clock,
        )
        self.setup = SetupTwoFactorTotpUseCase(
            repository=self.repository,
            secret_cipher=self.cipher,
            totp_provider=totp_provider,
            audit_recorder=audit_recorder,
            clock=self.clock,
            issuer="CertusFlow",
        )
        self.verify = VerifyTwoFactorTotpUseCase(
            repository=self.repository,
            totp_checker=totp_checker,
            backup_code_codec=self.backup_code_codec,
            audit_recorder=audit_recorder,
            clock=self.clock,
        )
        self.disable = DisableTwoFactorTotpUseCase(
            repository=self.repository,
            totp_checker=totp_checker,
            audit_recorder=audit_recorder,
        )
        self.status = GetTwoFactorStatusUseCase(repository=self.repository)

    def event_types(self) -> list[tuple[TwoFactorAuditEventType, bool]]:
        return [(event.event_type, event.success) for event in self.audit_log.events()]


def _current_code(*, secret: str, at_time: datetime = _NOW) -> str:
    return pyotp.TOTP(secret).at(int(at_time.timestamp()))


def _wrong_code(*, secret: str) -> str:
    timestamp = int(_NOW.timestamp())
    accepted = {pyotp.TOTP(secret).at(timestamp + offset * 30) for offset in (-1, 0, 1)}
    for candidate in ("000000", "111111", "222222", "333333"):
        if candidate not in accepted:
            return candidate
    raise AssertionError("cannot pick wrong TOTP code")


def _enable(harness: _Harness) -> tuple[str, tuple[str, ...]]:
    setup_result = harness.setup.setup(user_id=_USER_ID)
    assert setup_result.secret is not None
    verify_result = harness.verify.verify(
        user_id=_USER_ID,
        code=_current_code(secret=setup_result.secret),
    )
    assert verify_result.enabled is True
    return setup_result.secret, verify_result.backup_codes


def test_setup_returns_provisioning_uri_and_stores_only_encrypted_secret() -> None:
    """
    Verify setup discloses secret once and persists an encrypted pending record.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Account label defaults to the user id when e-mail is not provided.
    Raises:
        AssertionError: If output or persisted pending state violates policy.
    Side Effects:
        None.
    """
    harness = _Harness()

    result = harness.setup.setup(user_id=_USER_ID, account_label="trader@example.com")

    assert result.failure is None
    assert result.otpauth_uri is not None
    assert result.otpauth_uri.startswith("otpauth://totp/")
    query = parse_qs(urlparse(result.otpauth_uri).query)
    assert query["secret"] == [result.secret]
    assert query["issuer"] == ["CertusFlow"]
    stored = harness.repository.find_by_user_id(user_id=_USER_ID)
    assert stored is not None
    assert stored.enabled is False
    assert stored.backup_code_hashes == ()
    assert result.secret is not None
    assert result.secret.encode("utf-8") not in stored.totp_secret_enc
    assert harness.cipher.decrypt_secret(secret_enc=stored.totp_secret_enc) == result.secret
    assert harness.event_types() == [(TwoFactorAuditEventType.SETUP_INITIATED, True)]


def test_repeated_setup_replaces_pending_secret() -> None:
    harness = _Harness()

    first = harness.setup.setup(user_id=_USER_ID)
    second = harness.setup.setup(user_id=_USER_ID)

    assert first.secret != second.secret
    stored = harness.repository.find_by_user_id(user_id=_USER_ID)
    assert stored is not None
    assert harness.cipher.decrypt_secret(secret_enc=stored.totp_secret_enc) == second.secret


def test_verify_enables_two_factor_and_issues_hashed_backup_codes() -> None:
    """
    Verify a correct code flips pending state to enabled and returns ten backup codes once.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Backup codes are stored only as sha256 hashes.
    Raises:
        AssertionError: If enable transition or backup code storage violates policy.
    Side Effects:
        None.
    """
    harness = _Harness()

    _, backup_codes = _enable(harness)

    assert len(backup_codes) == 10
    assert len(set(backup_codes)) == 10
    stored = harness.repository.find_by_user_id(user_id=_USER_ID)
    assert stored is not None
    assert stored.enabled is True
    assert stored.verified_at == _NOW
    assert set(stored.backup_code_hashes) == {
        harness.backup_code_codec.hash_code(code=code) for code in backup_codes
    }
    assert not set(backup_codes) & set(stored.backup_code_hashes)
    assert harness.event_types() == [
        (TwoFactorAuditEventType.SETUP_INITIATED, True),
        (TwoFactorAuditEventType.VERIFY_ATTEMPT, True),
        (TwoFactorAuditEventType.ENABLED, True),
    ]


def test_verify_accepts_code_from_adjacent_time_step() -> None:
    harness = _Harness()
    setup_result = harness.setup.setup(user_id=_USER_ID)
    assert setup_result.secret is not None
    previous_step_code = _current_code(secret=setup_result.secret, at_time=_NOW)
    harness.clock.set_now(now_value=datetime(2026, 10, 19, 9, 30, 30, tzinfo=timezone.utc))

    result = harness.verify.verify(user_id=_USER_ID, code=previous_step_code)

    assert result.enabled is True


def test_verify_without_setup_requires_setup() -> None:
    harness = _Harness()

    result = harness.verify.verify(user_id=_USER_ID, code="123456")

    assert result.failure is not None
    assert result.failure.code == "two_factor_setup_required"
    assert result.failure.status_code == 422
    assert harness.event_types() == [(TwoFactorAuditEventType.VERIFY_ATTEMPT, False)]


@pytest.mark.parametrize("raw_code", ["12345", "1234567", "12a456", "", "１２３４５６"])
def test_verify_rejects_malformed_code_with_generic_payload(raw_code: str) -> None:
    harness = _Harness()
    harness.setup.setup(user_id=_USER_ID)

    result = harness.verify.verify(user_id=_USER_ID, code=raw_code)

    assert result.failure is not None
    assert result.failure.payload() == {
        "error": "invalid_two_factor_code",
        "message": "Invalid two-factor authentication code.",
    }
    assert result.failure.kind.value == "input_format"
    assert harness.audit_log.events()[-1].failure_kind == "input_format"


def test_wrong_verify_code_keeps_pending_record_retryable() -> None:
    harness = _Harness()
    setup_result = harness.setup.setup(user_id=_USER_ID)
    assert setup_result.secret is not None

    wrong = harness.verify.verify(
        user_id=_USER_ID,
        code=_wrong_code(secret=setup_result.secret),
    )
    retry = harness.verify.verify(
        user_id=_USER_ID,
        code=_current_code(secret=setup_result.secret),
    )

    assert wrong.failure is not None
    assert wrong.failure.code == "invalid_two_factor_code"
    assert wrong.failure.kind.value == "authorization"
    assert retry.enabled is True


def test_verify_after_enable_reports_already_enabled() -> None:
    harness = _Harness()
    secret, _ = _enable(harness)

    result = harness.verify.verify(user_id=_USER_ID, code=_current_code(secret=secret))

    assert result.failure is not None
    assert result.failure.code == "two_factor_already_enabled"
    assert result.failure.status_code == 409


def test_verify_with_corrupt_secret_reports_server_failure() -> None:
    harness = _Harness()
    harness.repository.upsert_pending_secret(
        user_id=_USER_ID,
        totp_secret_enc=b"not-an-envelope",
        updated_at=_NOW,
    )

    result = harness.verify.verify(user_id=_USER_ID, code="123456")

    assert result.failure is not None
    assert result.failure.code == "two_factor_verify_failed"
    assert result.failure.status_code == 500
    assert harness.audit_log.events()[-1].failure_kind == "integrity"


def test_setup_audits_attempt_before_pending_record_is_written() -> None:
    """
    Verify `setup_initiated` is appended while no pending record exists yet.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Audit append runs before the pending secret upsert.
    Raises:
        AssertionError: If the pending record is written before its audit event.
    Side Effects:
        None.
    """
    harness = _Harness()
    observed: list[tuple[TwoFactorAuditEventType, bool, bool]] = []
    append_event = harness.audit_log.append

    def _append(*, event: TwoFactorAuditEvent) -> None:
        record = harness.repository.find_by_user_id(user_id=event.user_id)
        observed.append((event.event_type, event.success, record is not None))
        append_event(event=event)

    harness.audit_log.append = _append  # type: ignore[method-assign]

    result = harness.setup.setup(user_id=_USER_ID)

    assert result.failure is None
    assert observed == [(TwoFactorAuditEventType.SETUP_INITIATED, True, False)]
    assert harness.repository.find_by_user_id(user_id=_USER_ID) is not None


def test_setup_losing_race_to_enable_audits_rejection_after_attempt() -> None:
    harness = _Harness()
    _enable(harness)
    stored_before = harness.repository.find_by_user_id(user_id=_USER_ID)
    events_before = len(harness.audit_log.events())

    def _stale_find(*, user_id: UserId) -> None:
        return None

    harness.repository.find_by_user_id = _stale_find  # type: ignore[method-assign]

    result = harness.setup.setup(user_id=_USER_ID)

    assert result.failure is not None
    assert result.failure.code == "two_factor_already_enabled"
    new_events = harness.audit_log.events()[events_before:]
    assert [(event.event_type, event.success) for event in new_events] == [
        (TwoFactorAuditEventType.SETUP_INITIATED, True),
        (TwoFactorAuditEventType.SETUP_INITIATED, False),
    ]
    assert new_events[1].failure_kind == "state"
    assert stored_before is not None
    assert stored_before.enabled is True


def test_setup_is_rejected_while_two_factor_is_enabled() -> None:
    harness = _Harness()
    _enable(harness)
    stored_before = harness.repository.find_by_user_id(user_id=_USER_ID)

    result = harness.setup.setup(user_id=_USER_ID)

    assert result.failure is not None
    assert result.failure.code == "two_factor_already_enabled"
    assert result.otpauth_uri is None
    assert harness.repository.find_by_user_id(user_id=_USER_ID) == stored_before


def test_disable_requires_valid_totp_code_and_deletes_record() -> None:
    """
    Verify disable rejects wrong and backup codes, then deletes record on a valid TOTP code.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Backup codes do not match the six-digit TOTP format.
    Raises:
        AssertionError: If disable guard or deletion semantics are broken.
    Side Effects:
        None.
    """
    harness = _Harness()
    secret, backup_codes = _enable(harness)
    client = ClientContext(ip_address="203.0.113.9", user_agent="pytest")

    wrong = harness.disable.disable(
        user_id=_USER_ID,
        code=_wrong_code(secret=secret),
        client=client,
    )
    backup = harness.disable.disable(user_id=_USER_ID, code=backup_codes[0], client=client)
    ok = harness.disable.disable(
        user_id=_USER_ID,
        code=_current_code(secret=secret),
        client=client,
    )

    assert wrong.disabled is False
    assert backup.disabled is False
    assert ok.disabled is True
    assert harness.repository.find_by_user_id(user_id=_USER_ID) is None
    last_event = harness.audit_log.events()[-1]
    assert last_event.event_type is TwoFactorAuditEventType.DISABLED
    assert last_event.ip_address == "203.0.113.9"
    assert last_event.user_agent == "pytest"


def test_disable_when_not_enabled_reports_conflict() -> None:
    harness = _Harness()
    harness.setup.setup(user_id=_USER_ID)

    result = harness.disable.disable(user_id=_USER_ID, code="123456")

    assert result.failure is not None
    assert result.failure.code == "two_factor_not_enabled"
    assert result.failure.status_code == 409


def test_setup_after_disable_starts_with_fresh_secret() -> None:
    harness = _Harness()
    secret, _ = _enable(harness)
    harness.disable.disable(user_id=_USER_ID, code=_current_code(secret=secret))

    result = harness.setup.setup(user_id=_USER_ID)

    assert result.failure is None
    assert result.secret != secret


def test_status_reports_pending_as_disabled_and_counts_backup_codes() -> None:
    harness = _Harness()

    assert harness.status.status(user_id=_USER_ID).enabled is False
    harness.setup.setup(user_id=_USER_ID)
    pending = harness.status.status(user_id=_USER_ID)
    _enable_pending(harness)
    enabled = harness.status.status(user_id=_USER_ID)

    assert (pending.enabled, pending.verified_at, pending.backup_codes_remaining) == (
        False,
        None,
        0,
    )
    assert (enabled.enabled, enabled.verified_at, enabled.backup_codes_remaining) == (
        True,
        _NOW,
        10,
    )


def _enable_pending(harness: _Harness) -> None:
    stored = harness.repository.find_by_user_id(user_id=_USER_ID)
    assert stored is not None
    secret = harness.cipher.decrypt_secret(secret_enc=stored.totp_secret_enc)
    assert harness.verify.verify(user_id=_USER_ID, code=_current_code(secret=secret)).enabled


def test_setup_requires_non_empty_issuer() -> None:
    harness = _Harness()

    with pytest.raises(ValueError):
        SetupTwoFactorTotpUseCase(
            repository=harness.repository,
            secret_cipher=harness.cipher,
            totp_provider=PyOtpTwoFactorTotpProvider(),
            audit_recorder=TwoFactorAuditRecorder(audit_log=harness.audit_log, clock=harness.clock),
            clock=harness.clock,
            issuer="  ",
        )
