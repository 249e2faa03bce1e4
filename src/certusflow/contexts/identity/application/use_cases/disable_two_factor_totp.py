from __future__ import annotations

import logging
from dataclasses import dataclass

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
    TWO_FACTOR_DISABLE_UNAVAILABLE,
    TWO_FACTOR_NOT_ENABLED,
    TwoFactorFailure,
)
from certusflow.contexts.identity.domain.entities import TwoFactorAuditEventType
from certusflow.shared_kernel.primitives import UserId

log = logging.getLogger(__name__)

_FAILURE_BY_OUTCOME: dict[TotpCheckOutcome, TwoFactorFailure] = {
    TotpCheckOutcome.MALFORMED: MALFORMED_TWO_FACTOR_CODE,
    TotpCheckOutcome.INVALID: INVALID_TWO_FACTOR_CODE,
    TotpCheckOutcome.CORRUPT_SECRET: TWO_FACTOR_DISABLE_UNAVAILABLE,
}


@dataclass(frozen=True, slots=True)
class DisableTwoFactorTotpResult:
    """
    DisableTwoFactorTotpResult — output model for identity `/2fa/disable` flow.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/disable_two_factor_totp.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
    """

    failure: TwoFactorFailure | None = None

    @property
    def disabled(self) -> bool:
        return self.failure is None


class DisableTwoFactorTotpUseCase:
    """
    DisableTwoFactorTotpUseCase — destructive disable flow guarded by a valid TOTP code.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_repository.py
      - src/certusflow/contexts/identity/application/services/totp_code_checker.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
    """

    def __init__(
        self,
        *,
        repository: TwoFactorRepository,
        totp_checker: TotpCodeChecker,
        audit_recorder: TwoFactorAuditRecorder,
    ) -> None:
        """
        Initialize disable use-case dependencies.

        Args:
            repository: 2FA persistence port.
            totp_checker: Format/decrypt/verify service.
            audit_recorder: Fail-open audit writer.
        Returns:
            None.
        Assumptions:
            All dependencies are initialized and non-null.
        Raises:
            ValueError: If dependencies are missing.
        Side Effects:
            None.
        """
        if repository is None:  # type: ignore[truthy-bool]
            raise ValueError("DisableTwoFactorTotpUseCase requires repository")
        if totp_checker is None:  # type: ignore[truthy-bool]
            raise ValueError("DisableTwoFactorTotpUseCase requires totp_checker")
        if audit_recorder is None:  # type: ignore[truthy-bool]
            raise ValueError("DisableTwoFactorTotpUseCase requires audit_recorder")

        self._repository = repository
        self._totp_checker = totp_checker
        self._audit_recorder = audit_recorder

    def disable(
        self,
        *,
        user_id: UserId,
        code: str,
        client: ClientContext | None = None,
    ) -> DisableTwoFactorTotpResult:
        """
        Delete enabled 2FA record after a valid TOTP code.

        Args:
            user_id: Authenticated identity user id.
            code: Submitted 6-digit TOTP code; backup codes are never accepted.
            client: Optional request metadata for audit.
        Returns:
            DisableTwoFactorTotpResult: Success marker or explicit failure.
        Assumptions:
            Whole record is deleted so a later setup starts from a clean secret.
        Raises:
            ValueError: If dependencies return invalid data.
        Side Effects:
            Deletes 2FA record on success; writes audit events for both outcomes.
        """
        existing = self._repository.find_by_user_id(user_id=user_id)
        if existing is None or not existing.enabled:
            return self._fail(user_id=user_id, failure=TWO_FACTOR_NOT_ENABLED, client=client)

        outcome = self._totp_checker.check(
            user_id=user_id,
            totp_secret_enc=existing.totp_secret_enc,
            code=code,
        )
        if outcome is not TotpCheckOutcome.VALID:
            return self._fail(user_id=user_id, failure=_FAILURE_BY_OUTCOME[outcome], client=client)

        self._audit_recorder.record(
            user_id=user_id,
            event_type=TwoFactorAuditEventType.DISABLE_ATTEMPT,
            success=True,
            client=client,
        )
        if not self._repository.delete_enabled(user_id=user_id):
            log.info("identity 2fa disable lost race user_id=%s", user_id)
            return DisableTwoFactorTotpResult(failure=TWO_FACTOR_NOT_ENABLED)

        self._audit_recorder.record(
            user_id=user_id,
            event_type=TwoFactorAuditEventType.DISABLED,
            success=True,
            client=client,
        )
        log.info("identity 2fa disabled user_id=%s", user_id)
        return DisableTwoFactorTotpResult()

    def _fail(
        self,
        *,
        user_id: UserId,
        failure: TwoFactorFailure,
        client: ClientContext | None,
    ) -> DisableTwoFactorTotpResult:
        self._audit_recorder.record(
            user_id=user_id,
            event_type=TwoFactorAuditEventType.DISABLE_ATTEMPT,
            success=False,
            failure_kind=failure.kind.value,
            client=client,
        )
        log.info(
            "identity 2fa disable rejected user_id=%s kind=%s",
            user_id,
            failure.kind.value,
        )
        return DisableTwoFactorTotpResult(failure=failure)
