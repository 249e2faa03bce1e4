from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from certusflow.contexts.identity.application.ports import IdentityClock
from certusflow.contexts.identity.application.ports.primary_credential_verifier import (
    PrimaryCredentialSession,
    PrimaryCredentialVerifier,
    PrimaryCredentialVerifierError,
)
from certusflow.contexts.identity.application.ports.two_factor_backup_code_codec import (
    TwoFactorBackupCodeCodec,
)
from certusflow.contexts.identity.application.ports.two_factor_repository import (
    TwoFactorRepository,
)
from certusflow.contexts.identity.application.services.hooks import emit_hook
from certusflow.contexts.identity.application.services.totp_code_checker import (
    TotpCheckOutcome,
    TotpCodeChecker,
)
from certusflow.contexts.identity.application.services.trusted_device_ledger import (
    IssuedTrustedDevice,
    TrustedDeviceLedger,
    TrustedDeviceMetadata,
)
from certusflow.contexts.identity.application.services.two_factor_audit_recorder import (
    ClientContext,
    TwoFactorAuditRecorder,
)
from certusflow.contexts.identity.application.use_cases.two_factor_errors import (
    INVALID_PRIMARY_CREDENTIALS,
    LOGIN_INVALID_CODE,
    LOGIN_MALFORMED_CODE,
    LOGIN_SECRET_UNREADABLE,
    LOGIN_TWO_FACTOR_REQUIRED,
    TwoFactorFailure,
)
from certusflow.contexts.identity.domain.entities import TwoFactorAuditEventType, TwoFactorAuth

log = logging.getLogger(__name__)

_TOTP_FAILURE_BY_OUTCOME: dict[TotpCheckOutcome, TwoFactorFailure] = {
    TotpCheckOutcome.MALFORMED: LOGIN_MALFORMED_CODE,
    TotpCheckOutcome.INVALID: LOGIN_INVALID_CODE,
    TotpCheckOutcome.CORRUPT_SECRET: LOGIN_SECRET_UNREADABLE,
}


@dataclass(frozen=True, slots=True)
class LoginTwoFactorChallengeRequest:
    """
    LoginTwoFactorChallengeRequest — input of one login attempt with optional second factor.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_login.py
    """

    email: str
    password: str = field(repr=False)
    code: str | None = field(default=None, repr=False)
    is_backup_code: bool = False
    trust_this_device: bool = False
    trusted_device_token: str | None = field(default=None, repr=False)
    client: ClientContext = field(default_factory=ClientContext)


@dataclass(frozen=True, slots=True)
class LoginTwoFactorChallengeResult:
    """
    LoginTwoFactorChallengeResult — session credential or generic failure of a login attempt.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_login.py
    """

    session: PrimaryCredentialSession | None = None
    two_factor_required: bool = False
    trusted_device_bypass: bool = False
    trusted_device: IssuedTrustedDevice | None = None
    failure: TwoFactorFailure | None = None

    def __post_init__(self) -> None:
        """
        Validate that exactly one of session or failure is populated.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Failed attempts never carry a session credential.
        Raises:
            ValueError: If result shape is inconsistent.
        Side Effects:
            None.
        """
        if (self.session is None) == (self.failure is None):
            raise ValueError(
                "LoginTwoFactorChallengeResult requires exactly one of session/failure"
            )
        if self.failure is not None and self.trusted_device is not None:
            raise ValueError("LoginTwoFactorChallengeResult failure cannot issue trusted device")


@dataclass(frozen=True, slots=True)
class TwoFactorLoginHooks:
    """
    TwoFactorLoginHooks — optional callbacks for login challenge counters.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - apps/api/wiring/modules/identity.py
      - tests/unit/apps/api/test_identity_metrics.py
    """

    on_login_success: Callable[[], None] | None = None
    on_login_failure: Callable[[], None] | None = None
    on_trusted_device_bypass: Callable[[], None] | None = None
    on_backup_code_consumed: Callable[[], None] | None = None
    on_primary_session_revoked: Callable[[], None] | None = None


class LoginTwoFactorChallengeUseCase:
    """
    LoginTwoFactorChallengeUseCase — оркестратор входа: пароль, доверенное устройство, TOTP/backup.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/primary_credential_verifier.py
      - src/certusflow/contexts/identity/application/services/trusted_device_ledger.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_login.py
    """

    def __init__(
        self,
        *,
        primary_verifier: PrimaryCredentialVerifier,
        repository: TwoFactorRepository,
        totp_checker: TotpCodeChecker,
        backup_code_codec: TwoFactorBackupCodeCodec,
        trusted_device_ledger: TrustedDeviceLedger,
        audit_recorder: TwoFactorAuditRecorder,
        clock: IdentityClock,
        hooks: TwoFactorLoginHooks | None = None,
    ) -> None:
        """
        Initialize login orchestrator dependencies.

        Args:
            primary_verifier: External email/password verifier.
            repository: 2FA persistence port.
            totp_checker: Format/decrypt/verify service.
            backup_code_codec: Backup code normalizer and hasher.
            trusted_device_ledger: Trusted device issue/resolve service.
            audit_recorder: Fail-open audit writer.
            clock: UTC time source.
            hooks: Optional metric callbacks.
        Returns:
            None.
        Assumptions:
            All dependencies are initialized and non-null.
        Raises:
            ValueError: If dependencies are missing.
        Side Effects:
            None.
        """
        if primary_verifier is None:  # type: ignore[truthy-bool]
            raise ValueError("LoginTwoFactorChallengeUseCase requires primary_verifier")
        if repository is None:  # type: ignore[truthy-bool]
            raise ValueError("LoginTwoFactorChallengeUseCase requires repository")
        if totp_checker is None:  # type: ignore[truthy-bool]
            raise ValueError("LoginTwoFactorChallengeUseCase requires totp_checker")
        if backup_code_codec is None:  # type: ignore[truthy-bool]
            raise ValueError("LoginTwoFactorChallengeUseCase requires backup_code_codec")
        if trusted_device_ledger is None:  # type: ignore[truthy-bool]
            raise ValueError("LoginTwoFactorChallengeUseCase requires trusted_device_ledger")
        if audit_recorder is None:  # type: ignore[truthy-bool]
            raise ValueError("LoginTwoFactorChallengeUseCase requires audit_recorder")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("LoginTwoFactorChallengeUseCase requires clock")

        self._primary_verifier = primary_verifier
        self._repository = repository
        self._totp_checker = totp_checker
        self._backup_code_codec = backup_code_codec
        self._trusted_device_ledger = trusted_device_ledger
        self._audit_recorder = audit_recorder
        self._clock = clock
        self._hooks = hooks if hooks is not None else TwoFactorLoginHooks()

    def login(self, *, request: LoginTwoFactorChallengeRequest) -> LoginTwoFactorChallengeResult:
        """
        Run one login attempt through primary credentials and the second factor.

        Args:
            request: Login attempt input.
        Returns:
            LoginTwoFactorChallengeResult: Session (plus optional trusted-device token) or
                generic failure.
        Assumptions:
            Any failure after primary success revokes the primary session before returning.
        Raises:
            PrimaryCredentialVerifierError: If primary provider is unavailable.
            Exception: Infrastructure errors propagate after the primary session is revoked.
        Side Effects:
            Calls primary provider, may consume a backup code, upsert a trusted device, and
            writes audit events.
        """
        session = self._primary_verifier.verify(email=request.email, password=request.password)
        if session is None:
            log.info("identity login rejected reason=invalid_credentials")
            emit_hook(self._hooks.on_login_failure)
            return LoginTwoFactorChallengeResult(failure=INVALID_PRIMARY_CREDENTIALS)

        try:
            return self._complete_login(session=session, request=request)
        except Exception:
            log.error(
                "identity login aborted, revoking primary session user_id=%s",
                session.user_id,
            )
            self._revoke_session(session=session)
            raise

    def _complete_login(
        self,
        *,
        session: PrimaryCredentialSession,
        request: LoginTwoFactorChallengeRequest,
    ) -> LoginTwoFactorChallengeResult:
        """
        Decide second-factor outcome for a session that passed primary verification.

        Args:
            session: Session opened by the primary verifier.
            request: Login attempt input.
        Returns:
            LoginTwoFactorChallengeResult: Final outcome.
        Assumptions:
            Disabled or pending records are not consulted.
        Raises:
            Exception: Storage/driver exceptions from ports.
        Side Effects:
            See `login`.
        """
        record = self._repository.find_by_user_id(user_id=session.user_id)
        if record is None or not record.enabled:
            emit_hook(self._hooks.on_login_success)
            return LoginTwoFactorChallengeResult(session=session)

        client = request.client
        device = self._trusted_device_ledger.resolve(
            token=request.trusted_device_token,
            user_id=session.user_id,
            client_identity=client.user_agent,
        )
        if device is not None:
            self._trusted_device_ledger.mark_used(device=device)
            self._audit_recorder.record(
                user_id=session.user_id,
                event_type=TwoFactorAuditEventType.LOGIN_SUCCESS,
                success=True,
                client=client,
            )
            log.info(
                "identity login trusted device bypass user_id=%s device_id=%s",
                session.user_id,
                device.device_id,
            )
            emit_hook(self._hooks.on_trusted_device_bypass)
            emit_hook(self._hooks.on_login_success)
            return LoginTwoFactorChallengeResult(
                session=session,
                two_factor_required=True,
                trusted_device_bypass=True,
            )

        if request.code is None or not request.code.strip():
            self._audit_recorder.record(
                user_id=session.user_id,
                event_type=TwoFactorAuditEventType.LOGIN_FAILED,
                success=False,
                failure_kind=LOGIN_TWO_FACTOR_REQUIRED.kind.value,
                client=client,
            )
            log.info("identity login second factor missing user_id=%s", session.user_id)
            self._revoke_session(session=session)
            emit_hook(self._hooks.on_login_failure)
            return LoginTwoFactorChallengeResult(failure=LOGIN_TWO_FACTOR_REQUIRED)

        if request.is_backup_code:
            failure = self._check_backup_code(record=record, code=request.code)
        else:
            failure = self._check_totp_code(record=record, code=request.code)

        if failure is not None:
            self._audit_recorder.record(
                user_id=session.user_id,
                event_type=TwoFactorAuditEventType.LOGIN_FAILED,
                success=False,
                failure_kind=failure.kind.value,
                client=client,
            )
            log.info(
                "identity login second factor rejected user_id=%s kind=%s backup=%s",
                session.user_id,
                failure.kind.value,
                request.is_backup_code,
            )
            self._revoke_session(session=session)
            emit_hook(self._hooks.on_login_failure)
            return LoginTwoFactorChallengeResult(failure=failure)

        trusted_device = None
        if request.trust_this_device:
            trusted_device = self._trusted_device_ledger.issue(
                user_id=session.user_id,
                device_fingerprint=self._trusted_device_ledger.fingerprint(
                    user_id=session.user_id,
                    client_identity=client.user_agent,
                ),
                metadata=TrustedDeviceMetadata(
                    ip_address=client.ip_address,
                    user_agent=client.user_agent,
                ),
            )
        self._audit_recorder.record(
            user_id=session.user_id,
            event_type=TwoFactorAuditEventType.LOGIN_SUCCESS,
            success=True,
            client=client,
        )
        emit_hook(self._hooks.on_login_success)
        return LoginTwoFactorChallengeResult(
            session=session,
            two_factor_required=True,
            trusted_device=trusted_device,
        )

    def _check_totp_code(self, *, record: TwoFactorAuth, code: str) -> TwoFactorFailure | None:
        outcome = self._totp_checker.check(
            user_id=record.user_id,
            totp_secret_enc=record.totp_secret_enc,
            code=code,
        )
        if outcome is TotpCheckOutcome.VALID:
            return None
        return _TOTP_FAILURE_BY_OUTCOME[outcome]

    def _check_backup_code(self, *, record: TwoFactorAuth, code: str) -> TwoFactorFailure | None:
        """
        Match backup code against stored hashes and consume it atomically.

        Args:
            record: Enabled 2FA record snapshot.
            code: Raw submitted backup code.
        Returns:
            TwoFactorFailure | None: `None` when this call consumed the code.
        Assumptions:
            Every stored hash is compared so timing does not reveal the matching position.
        Raises:
            Exception: Storage/driver exceptions from repository.
        Side Effects:
            Removes the consumed hash from storage.
        """
        normalized = self._backup_code_codec.normalize_code(code=code)
        if normalized is None:
            return LOGIN_MALFORMED_CODE

        matched_hash = None
        for code_hash in record.backup_code_hashes:
            if self._backup_code_codec.verify_code(code=normalized, code_hash=code_hash):
                matched_hash = code_hash
        if matched_hash is None:
            return LOGIN_INVALID_CODE

        consumed = self._repository.consume_backup_code(
            user_id=record.user_id,
            code_hash=matched_hash,
            updated_at=self._clock.now(),
        )
        if not consumed:
            return LOGIN_INVALID_CODE
        log.info(
            "identity login backup code consumed user_id=%s remaining=%s",
            record.user_id,
            record.backup_codes_remaining - 1,
        )
        emit_hook(self._hooks.on_backup_code_consumed)
        return None

    def _revoke_session(self, *, session: PrimaryCredentialSession) -> None:
        """
        Revoke primary session that must not outlive a failed second factor.

        Args:
            session: Session opened by the primary verifier.
        Returns:
            None.
        Assumptions:
            Token of this session is never disclosed to the client, so revoke errors are
            logged instead of turning the outcome into a server error.
        Raises:
            None.
        Side Effects:
            Calls primary provider logout endpoint.
        """
        try:
            self._primary_verifier.revoke(session=session)
        except PrimaryCredentialVerifierError:
            log.exception("identity primary session revoke failed user_id=%s", session.user_id)
            return
        log.info("identity primary session revoked user_id=%s", session.user_id)
        emit_hook(self._hooks.on_primary_session_revoked)
