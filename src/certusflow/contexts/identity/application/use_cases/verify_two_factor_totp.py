from __future__ import annotations

import logging
from dataclasses import dataclass, field

from certusflow.contexts.identity.application.ports import IdentityClock
from certusflow.contexts.identity.application.ports.two_factor_backup_code_codec import (
    TwoFactorBackupCodeCodec,
)
from certusflow.contexts.identity.application.ports.two_factor_repository import (
    TwoFactorRepository,
)
from certusflow.contexts.identity.application.services.totp_code_checker import (
    TotpCheckOutcome,
    TotpCodeChecker,
)
from certusflow.contexts.identity.application.services.two_factor_audit_recorder import (
    ClientContext,
    TwoFactorAuditRecorder,
)
from certusflow.contexts.identity.application.use_cases.two_factor_errors import (
    INVALID_TWO_FACTOR_CODE,
    MALFORMED_TWO_FACTOR_CODE,
    TWO_FACTOR_ALREADY_ENABLED,
    TWO_FACTOR_SETUP_REQUIRED,
    TWO_FACTOR_VERIFY_UNAVAILABLE,
    TwoFactorFailure,
)
from certusflow.contexts.identity.domain.entities import TwoFactorAuditEventType
from certusflow.shared_kernel.primitives import UserId

log = logging.getLogger(__name__)

BACKUP_CODE_BATCH_SIZE = 10

_FAILURE_BY_OUTCOME: dict[TotpCheckOutcome, TwoFactorFailure] = {
    TotpCheckOutcome.MALFORMED: MALFORMED_TWO_FACTOR_CODE,
    TotpCheckOutcome.INVALID: INVALID_TWO_FACTOR_CODE,
    TotpCheckOutcome.CORRUPT_SECRET: TWO_FACTOR_VERIFY_UNAVAILABLE,
}


@dataclass(frozen=True, slots=True)
class VerifyTwoFactorTotpResult:
    """
    VerifyTwoFactorTotpResult — output model for identity `/2fa/verify` flow.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/verify_two_factor_totp.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
    """

    backup_codes: tuple[str, ...] = field(default=(), repr=False)
    failure: TwoFactorFailure | None = None

    def __post_init__(self) -> None:
        """
        Validate that result carries backup codes only on success.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Plaintext backup codes are disclosed exactly once, in this result.
        Raises:
            ValueError: If success carries no codes or failure carries codes.
        Side Effects:
            None.
        """
        if self.failure is None and not self.backup_codes:
            raise ValueError("VerifyTwoFactorTotpResult success must carry backup codes")
        if self.failure is not None and self.backup_codes:
            raise ValueError("VerifyTwoFactorTotpResult failure cannot carry backup codes")

    @property
    def enabled(self) -> bool:
        return self.failure is None


class VerifyTwoFactorTotpUseCase:
    """
    VerifyTwoFactorTotpUseCase — verify flow enabling 2FA and issuing backup codes.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/services/totp_code_checker.py
      - src/certusflow/contexts/identity/application/ports/two_factor_backup_code_codec.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
    """

    def __init__(
        self,
        *,
        repository: TwoFactorRepository,
        totp_checker: TotpCodeChecker,
        backup_code_codec: TwoFactorBackupCodeCodec,
        audit_recorder: TwoFactorAuditRecorder,
        clock: IdentityClock,
        backup_code_count: int = BACKUP_CODE_BATCH_SIZE,
    ) -> None:
        """
        Initialize verify use-case dependencies and backup batch policy.

        Args:
            repository: 2FA persistence port.
            totp_checker: Format/decrypt/verify service.
            backup_code_codec: Backup code generator and hasher.
            audit_recorder: Fail-open audit writer.
            clock: UTC time source for `verified_at`.
            backup_code_count: Number of backup codes issued on enable.
        Returns:
            None.
        Assumptions:
            All dependencies are initialized and non-null.
        Raises:
            ValueError: If dependencies are missing or batch size is not positive.
        Side Effects:
            None.
        """
        if repository is None:  # type: ignore[truthy-bool]
            raise ValueError("VerifyTwoFactorTotpUseCase requires repository")
        if totp_checker is None:  # type: ignore[truthy-bool]
            raise ValueError("VerifyTwoFactorTotpUseCase requires totp_checker")
        if backup_code_codec is None:  # type: ignore[truthy-bool]
            raise ValueError("VerifyTwoFactorTotpUseCase requires backup_code_codec")
        if audit_recorder is None:  # type: ignore[truthy-bool]
            raise ValueError("VerifyTwoFactorTotpUseCase requires audit_recorder")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("VerifyTwoFactorTotpUseCase requires clock")
        if backup_code_count <= 0:
            raise ValueError("VerifyTwoFactorTotpUseCase requires backup_code_count > 0")

        self._repository = repository
        self._totp_checker = totp_checker
        self._backup_code_codec = backup_code_codec
        self._audit_recorder = audit_recorder
        self._clock = clock
        self._backup_code_count = backup_code_count

    def verify(
        self,
        *,
        user_id: UserId,
        code: str,
        client: ClientContext | None = None,
    ) -> VerifyTwoFactorTotpResult:
        """
        Verify TOTP code against pending setup and enable 2FA on success.

        Args:
            user_id: Authenticated identity user id.
            code: Submitted 6-digit TOTP code.
            client: Optional request metadata for audit.
        Returns:
            VerifyTwoFactorTotpResult: Plaintext backup codes or explicit failure.
        Assumptions:
            Invalid codes leave the pending record untouched; retry is always possible.
        Raises:
            ValueError: If dependencies return invalid data.
        Side Effects:
            Enables 2FA with backup code hashes on success; writes audit events.
        """
        existing = self._repository.find_by_user_id(user_id=user_id)
        if existing is None:
            return self._fail(user_id=user_id, failure=TWO_FACTOR_SETUP_REQUIRED, client=client)
        if existing.enabled:
            return self._fail(user_id=user_id, failure=TWO_FACTOR_ALREADY_ENABLED, client=client)

        outcome = self._totp_checker.check(
            user_id=user_id,
            totp_secret_enc=existing.totp_secret_enc,
            code=code,
        )
        if outcome is not TotpCheckOutcome.VALID:
            return self._fail(user_id=user_id, failure=_FAILURE_BY_OUTCOME[outcome], client=client)

        self._audit_recorder.record(
            user_id=user_id,
            event_type=TwoFactorAuditEventType.VERIFY_ATTEMPT,
            success=True,
            client=client,
        )
        backup_codes = self._backup_code_codec.generate_codes(count=self._backup_code_count)
        enabled = self._repository.enable(
            user_id=user_id,
            expected_secret_enc=existing.totp_secret_enc,
            backup_code_hashes=[
                self._backup_code_codec.hash_code(code=backup_code)
                for backup_code in backup_codes
            ],
            verified_at=self._clock.now(),
        )
        if enabled is None:
            current = self._repository.find_by_user_id(user_id=user_id)
            failure = (
                TWO_FACTOR_ALREADY_ENABLED
                if current is not None and current.enabled
                else TWO_FACTOR_SETUP_REQUIRED
            )
            log.info("identity 2fa enable lost race user_id=%s error=%s", user_id, failure.code)
            return VerifyTwoFactorTotpResult(failure=failure)

        self._audit_recorder.record(
            user_id=user_id,
            event_type=TwoFactorAuditEventType.ENABLED,
            success=True,
            client=client,
        )
        log.info("identity 2fa enabled user_id=%s", user_id)
        return VerifyTwoFactorTotpResult(backup_codes=backup_codes)

    def _fail(
        self,
        *,
        user_id: UserId,
        failure: TwoFactorFailure,
        client: ClientContext | None,
    ) -> VerifyTwoFactorTotpResult:
        self._audit_recorder.record(
            user_id=user_id,
            event_type=TwoFactorAuditEventType.VERIFY_ATTEMPT,
            success=False,
            failure_kind=failure.kind.value,
            client=client,
        )
        log.info(
            "identity 2fa verify rejected user_id=%s kind=%s",
            user_id,
            failure.kind.value,
        )
        return VerifyTwoFactorTotpResult(failure=failure)
