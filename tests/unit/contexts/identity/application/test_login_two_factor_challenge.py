from __future__ import annotations

import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pyotp
import pytest

from certusflow.contexts.identity.adapters.outbound.persistence.in_memory import (
    InMemoryIdentityTrustedDeviceRepository,
    InMemoryIdentityTwoFactorAuditLog,
    InMemoryIdentityTwoFactorRepository,
)
from certusflow.contexts.identity.adapters.outbound.security.two_factor import (
    AesGcmEnvelopeTwoFactorSecretCipher,
    PyOtpTwoFactorTotpProvider,
    Sha256TwoFactorBackupCodeCodec,
)
from certusflow.contexts.identity.application.ports import (
    IdentityClock,
    PrimaryCredentialSession,
    PrimaryCredentialVerifier,
    PrimaryCredentialVerifierError,
)
from certusflow.contexts.identity.application.services import (
    ClientContext,
    TotpCodeChecker,
    TrustedDeviceLedger,
    TwoFactorAuditRecorder,
)
from certusflow.contexts.identity.application.use_cases import (
    LoginTwoFactorChallengeRequest,
    LoginTwoFactorChallengeUseCase,
    SetupTwoFactorTotpUseCase,
    TwoFactorLoginHooks,
    VerifyTwoFactorTotpUseCase,
)
from certusflow.contexts.identity.domain import TwoFactorAuditEventType
from certusflow.shared_kernel.primitives import UserId

_KEK_B64 = "cm9laHViLWRldi1pZGVudGl0eS0yZmEta2V5LTAwMDE="
_NOW = datetime(2026, 10, 19, 10, 0, 0, tzinfo=timezone.utc)
_USER_ID = UserId.from_string("00000000-0000-0000-0000-000000000201")
_EMAIL = "trader@example.com"
_PASSWORD = "correct horse battery staple"
_BROWSER_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/130.0.0.0 Safari/537.36"
_OTHER_UA = "Mozilla/5.0 (X11; Linux x86_64; rv:131.0) Gecko/20100101 Firefox/131.0"


class _MutableClock(IdentityClock):
    def __init__(self, *, now_value: datetime) -> None:
        self._now_value = now_value

    def set_now(self, *, now_value: datetime) -> None:
        self._now_value = now_value

    def now(self) -> datetime:
        return self._now_value


class _FakePrimaryVerifier(PrimaryCredentialVerifier):
    """
    Deterministic primary credential verifier issuing numbered sessions.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/primary_credential_verifier.py
    """

    def __init__(self, *, fail_revoke: bool = False) -> None:
        self._fail_revoke = fail_revoke
        self._lock = threading.Lock()
        self._issued = 0
        self.revoked_tokens: list[str] = []

    def verify(self, *, email: str, password: str) -> PrimaryCredentialSession | None:
        if email != _EMAIL or password != _PASSWORD:
            return None
        with self._lock:
            self._issued += 1
            token = f"access-token-{self._issued}"
        return PrimaryCredentialSession(
            user_id=_USER_ID,
            email=email,
            access_token=token,
            expires_at=_NOW + timedelta(hours=1),
        )

    def revoke(self, *, session: PrimaryCredentialSession) -> None:
        if self._fail_revoke:
            raise PrimaryCredentialVerifierError("logout endpoint unavailable")
        with self._lock:
            self.revoked_tokens.append(session.access_token)


class _Harness:
    """
    Login challenge wiring over in-memory storage with counting hooks.
    """

    def __init__(self, *, fail_revoke: bool = False) -> None:
        self.clock = _MutableClock(now_value=_NOW)
        self.repository = InMemoryIdentityTwoFactorRepository()
        self.device_repository = InMemoryIdentityTrustedDeviceRepository()
        self.audit_log = InMemoryIdentityTwoFactorAuditLog()
        self.verifier = _FakePrimaryVerifier(fail_revoke=fail_revoke)
        self.hook_calls: Counter[str] = Counter()
        self._hook_lock = threading.Lock()
        cipher = AesGcmEnvelopeTwoFactorSecretCipher(kek_b64=_KEK_B64)
        totp_provider = PyOtpTwoFactorTotpProvider()
        backup_code_codec = Sha256TwoFactorBackupCodeCodec()
        audit_recorder = TwoFactorAuditRecorder(audit_log=self.audit_log, clock=self.clock)
        totp_checker = TotpCodeChecker(
            secret_cipher=cipher,
            totp_provider=totp_provider,
            clock=self.clock,
        )
        self.ledger = TrustedDeviceLedger(repository=self.device_repository, clock=self.clock)
        self.setup_use_case = SetupTwoFactorTotpUseCase(
            repository=self.repository,
            secret_cipher=cipher,
            totp_provider=totp_provider,
            audit_recorder=audit_recorder,
            clock=self.clock,
        )
        self.verify_use_case = VerifyTwoFactorTotpUseCase(
            repository=self.repository,
            totp_checker=totp_checker,
            backup_code_codec=backup_code_codec,
            audit_recorder=audit_recorder,
            clock=self.clock,
        )
        self.login_use_case = LoginTwoFactorChallengeUseCase(
            primary_verifier=self.verifier,
            repository=self.repository,
            totp_checker=totp_checker,
            backup_code_codec=backup_code_codec,
            trusted_device_ledger=self.ledger,
            audit_recorder=audit_recorder,
            clock=self.clock,
            hooks=TwoFactorLoginHooks(
                on_login_success=self._hook("login_success"),
                on_login_failure=self._hook("login_failure"),
                on_trusted_device_bypass=self._hook("trusted_device_bypass"),
                on_backup_code_consumed=self._hook("backup_code_consumed"),
                on_primary_session_revoked=self._hook("primary_session_revoked"),
            ),
        )

    def _hook(self, name: str):
        def _increment() -> None:
            with self._hook_lock:
                self.hook_calls[name] += 1

        return _increment

    def enable_two_factor(self) -> tuple[str, tuple[str, ...]]:
        setup_result = self.setup_use_case.setup(user_id=_USER_ID)
        assert setup_result.secret is not None
        verify_result = self.verify_use_case.verify(
            user_id=_USER_ID,
            code=_totp_code(secret=setup_result.secret),
        )
        assert verify_result.enabled
        return setup_result.secret, verify_result.backup_codes

    def login(self, **kwargs: object) -> object:
        request = LoginTwoFactorChallengeRequest(email=_EMAIL, password=_PASSWORD, **kwargs)
        return self.login_use_case.login(request=request)


def _totp_code(*, secret: str) -> str:
    return pyotp.TOTP(secret).at(int(_NOW.timestamp()))


def _wrong_code(*, secret: str) -> str:
    timestamp = int(_NOW.timestamp())
    accepted = {pyotp.TOTP(secret).at(timestamp + offset * 30) for offset in (-1, 0, 1)}
    return next(code for code in ("000000", "111111", "222222", "333333") if code not in accepted)


def test_wrong_password_fails_before_second_factor() -> None:
    harness = _Harness()
    harness.enable_two_factor()

    result = harness.login_use_case.login(
        request=LoginTwoFactorChallengeRequest(email=_EMAIL, password="wrong", code="123456"),
    )

    assert result.failure is not None
    assert result.failure.code == "invalid_credentials"
    assert result.failure.status_code == 401
    assert harness.verifier.revoked_tokens == []
    assert harness.hook_calls["login_failure"] == 1


def test_user_without_two_factor_gets_primary_session() -> None:
    harness = _Harness()

    result = harness.login()

    assert result.failure is None
    assert result.session is not None
    assert result.session.access_token == "access-token-1"
    assert result.two_factor_required is False


def test_pending_setup_does_not_gate_login() -> None:
    harness = _Harness()
    harness.setup_use_case.setup(user_id=_USER_ID)

    result = harness.login()

    assert result.session is not None
    assert result.two_factor_required is False


def test_missing_code_revokes_primary_session_and_requests_second_factor() -> None:
    """
    Verify primary session is revoked when enabled user submits no second factor.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Session token is never returned on failure.
    Raises:
        AssertionError: If session leaks or is not revoked.
    Side Effects:
        None.
    """
    harness = _Harness()
    harness.enable_two_factor()
    events_before = len(harness.audit_log.events())

    result = harness.login(code="   ", client=ClientContext(ip_address="203.0.113.9"))

    assert result.session is None
    assert result.failure is not None
    assert result.failure.code == "two_factor_required"
    assert harness.verifier.revoked_tokens == ["access-token-1"]
    assert harness.hook_calls["primary_session_revoked"] == 1
    new_events = harness.audit_log.events()[events_before:]
    assert [event.event_type for event in new_events] == [TwoFactorAuditEventType.LOGIN_FAILED]
    assert new_events[0].success is False
    assert new_events[0].failure_kind == "state"
    assert new_events[0].ip_address == "203.0.113.9"


def test_wrong_totp_code_revokes_session_and_audits_failure() -> None:
    harness = _Harness()
    secret, _ = harness.enable_two_factor()

    result = harness.login(code=_wrong_code(secret=secret), client=ClientContext(ip_address="::1"))

    assert result.failure is not None
    assert result.failure.code == "invalid_two_factor_code"
    assert result.failure.status_code == 401
    assert harness.verifier.revoked_tokens == ["access-token-1"]
    event = harness.audit_log.events()[-1]
    assert event.event_type is TwoFactorAuditEventType.LOGIN_FAILED
    assert event.success is False
    assert event.failure_kind == "authorization"
    assert event.ip_address == "::1"


def test_malformed_code_gets_same_payload_as_wrong_code() -> None:
    harness = _Harness()
    secret, _ = harness.enable_two_factor()

    malformed = harness.login(code="12-34")
    wrong = harness.login(code=_wrong_code(secret=secret))

    assert malformed.failure is not None
    assert wrong.failure is not None
    assert malformed.failure.payload() == wrong.failure.payload()
    assert malformed.failure.status_code == wrong.failure.status_code
    assert malformed.failure.kind.value == "input_format"


def test_valid_totp_code_returns_session_and_audits_success() -> None:
    harness = _Harness()
    secret, _ = harness.enable_two_factor()

    result = harness.login(code=_totp_code(secret=secret))

    assert result.failure is None
    assert result.session is not None
    assert result.two_factor_required is True
    assert result.trusted_device is None
    assert harness.verifier.revoked_tokens == []
    assert harness.audit_log.events()[-1].event_type is TwoFactorAuditEventType.LOGIN_SUCCESS
    assert harness.hook_calls["login_success"] == 1


def test_backup_code_is_accepted_once_with_display_formatting() -> None:
    """
    Verify backup code in `XXXX-XXXX` lowercase form logs in once and is then rejected.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Separators and letter case are cosmetic for backup codes.
    Raises:
        AssertionError: If backup code is reusable or formatting is not normalized.
    Side Effects:
        None.
    """
    harness = _Harness()
    _, backup_codes = harness.enable_two_factor()
    code = backup_codes[0]
    display_code = f"{code[:4]}-{code[4:]}".lower()

    first = harness.login(code=display_code, is_backup_code=True)
    second = harness.login(code=code, is_backup_code=True)

    assert first.session is not None
    assert second.failure is not None
    assert second.failure.code == "invalid_two_factor_code"
    stored = harness.repository.find_by_user_id(user_id=_USER_ID)
    assert stored is not None
    assert stored.backup_codes_remaining == 9
    assert harness.hook_calls["backup_code_consumed"] == 1


def test_concurrent_logins_with_same_backup_code_succeed_exactly_once() -> None:
    harness = _Harness()
    _, backup_codes = harness.enable_two_factor()
    attempts = 8

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        results = list(
            pool.map(
                lambda _: harness.login(code=backup_codes[3], is_backup_code=True),
                range(attempts),
            )
        )

    successes = [result for result in results if result.failure is None]
    assert len(successes) == 1
    assert len(harness.verifier.revoked_tokens) == attempts - 1
    stored = harness.repository.find_by_user_id(user_id=_USER_ID)
    assert stored is not None
    assert stored.backup_codes_remaining == 9


def test_totp_code_is_not_accepted_as_backup_code() -> None:
    harness = _Harness()
    secret, _ = harness.enable_two_factor()

    result = harness.login(code=_totp_code(secret=secret), is_backup_code=True)

    assert result.failure is not None
    assert result.failure.kind.value == "input_format"


def test_trust_this_device_issues_token_that_bypasses_next_login() -> None:
    """
    Verify trusted device issued after full 2FA lets the same browser skip the code.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Fingerprint derives from user id and User-Agent.
    Raises:
        AssertionError: If issue or bypass semantics are broken.
    Side Effects:
        None.
    """
    harness = _Harness()
    secret, _ = harness.enable_two_factor()
    client = ClientContext(ip_address="198.51.100.20", user_agent=_BROWSER_UA)

    first = harness.login(code=_totp_code(secret=secret), trust_this_device=True, client=client)
    assert first.trusted_device is not None
    token = first.trusted_device.token
    assert first.trusted_device.expires_at == _NOW + timedelta(days=30)
    assert first.trusted_device.device.device_name == "Chrome on Windows"
    assert first.trusted_device.device.token_hash != token

    harness.clock.set_now(now_value=_NOW + timedelta(days=2))
    second = harness.login(trusted_device_token=token, client=client)

    assert second.session is not None
    assert second.trusted_device_bypass is True
    assert harness.hook_calls["trusted_device_bypass"] == 1
    devices = harness.ledger.list_devices(user_id=_USER_ID)
    assert [device.last_used_at for device in devices] == [_NOW + timedelta(days=2)]


def test_trusted_device_token_from_other_browser_still_requires_code() -> None:
    harness = _Harness()
    secret, _ = harness.enable_two_factor()
    first = harness.login(
        code=_totp_code(secret=secret),
        trust_this_device=True,
        client=ClientContext(user_agent=_BROWSER_UA),
    )
    assert first.trusted_device is not None

    result = harness.login(
        trusted_device_token=first.trusted_device.token,
        client=ClientContext(user_agent=_OTHER_UA),
    )

    assert result.failure is not None
    assert result.failure.code == "two_factor_required"


def test_expired_trusted_device_requires_code_and_is_removed() -> None:
    harness = _Harness()
    secret, _ = harness.enable_two_factor()
    client = ClientContext(user_agent=_BROWSER_UA)
    first = harness.login(code=_totp_code(secret=secret), trust_this_device=True, client=client)
    assert first.trusted_device is not None

    harness.clock.set_now(now_value=_NOW + timedelta(days=30))
    result = harness.login(trusted_device_token=first.trusted_device.token, client=client)

    assert result.failure is not None
    assert result.failure.code == "two_factor_required"
    assert harness.device_repository.list_for_user(user_id=_USER_ID) == ()


def test_trusted_device_issue_error_revokes_session_without_success_audit() -> None:
    harness = _Harness()
    secret, _ = harness.enable_two_factor()
    events_before = len(harness.audit_log.events())

    def _broken_upsert(*, device: object) -> None:
        raise RuntimeError("device store down")

    harness.device_repository.upsert = _broken_upsert  # type: ignore[method-assign]

    with pytest.raises(RuntimeError, match="device store down"):
        harness.login(
            code=_totp_code(secret=secret),
            trust_this_device=True,
            client=ClientContext(user_agent=_BROWSER_UA),
        )

    new_event_types = [event.event_type for event in harness.audit_log.events()[events_before:]]
    assert TwoFactorAuditEventType.LOGIN_SUCCESS not in new_event_types
    assert harness.verifier.revoked_tokens == ["access-token-1"]
    assert harness.hook_calls["login_success"] == 0


def test_revoke_failure_is_logged_without_changing_outcome() -> None:
    harness = _Harness(fail_revoke=True)
    harness.enable_two_factor()

    result = harness.login()

    assert result.failure is not None
    assert result.failure.code == "two_factor_required"
    assert harness.hook_calls["primary_session_revoked"] == 0


def test_storage_error_after_primary_success_revokes_session_and_propagates() -> None:
    harness = _Harness()
    harness.enable_two_factor()

    def _broken_find(*, user_id: UserId) -> None:
        raise RuntimeError("storage down")

    harness.repository.find_by_user_id = _broken_find  # type: ignore[method-assign]

    with pytest.raises(RuntimeError, match="storage down"):
        harness.login(code="123456")
    assert harness.verifier.revoked_tokens == ["access-token-1"]


def test_primary_provider_outage_propagates() -> None:
    harness = _Harness()

    def _unavailable(*, email: str, password: str) -> None:
        raise PrimaryCredentialVerifierError("provider down")

    harness.verifier.verify = _unavailable  # type: ignore[method-assign]

    with pytest.raises(PrimaryCredentialVerifierError):
        harness.login()
