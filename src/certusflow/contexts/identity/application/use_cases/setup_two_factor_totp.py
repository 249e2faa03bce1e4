from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from certusflow.contexts.identity.application.ports import IdentityClock
from certusflow.contexts.identity.application.ports.two_factor_repository import (
    TwoFactorRepository,
)
from certusflow.contexts.identity.application.ports.two_factor_secret_cipher import (
    TwoFactorSecretCipher,
)
from certusflow.contexts.identity.application.ports.two_factor_totp_provider import (
    TwoFactorTotpProvider,
)
from certusflow.contexts.identity.application.services.two_factor_audit_recorder import (
    ClientContext,
    TwoFactorAuditRecorder,
)
from certusflow.contexts.identity.application.use_cases.two_factor_errors import (
    TWO_FACTOR_ALREADY_ENABLED,
    TwoFactorFailure,
)
from certusflow.contexts.identity.domain.entities import TwoFactorAuditEventType
from certusflow.shared_kernel.primitives import UserId

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SetupTwoFactorTotpResult:
    """
    SetupTwoFactorTotpResult — output model for identity `/2fa/setup` flow.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/setup_two_factor_totp.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
    """

    otpauth_uri: str | None = None
    secret: str | None = field(default=None, repr=False)
    failure: TwoFactorFailure | None = None

    def __post_init__(self) -> None:
        """
        Validate that result is either a provisioning payload or a failure.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            UI generates QR code from returned URI; secret is shown for manual entry once.
        Raises:
            ValueError: If both or neither outcome is populated, or URI scheme is wrong.
        Side Effects:
            None.
        """
        if self.failure is not None:
            if self.otpauth_uri is not None or self.secret is not None:
                raise ValueError("SetupTwoFactorTotpResult failure cannot carry provisioning data")
            return
        if self.otpauth_uri is None or self.secret is None:
            raise ValueError("SetupTwoFactorTotpResult requires otpauth_uri and secret")
        if not self.otpauth_uri.strip().startswith("otpauth://totp"):
            raise ValueError(
                "SetupTwoFactorTotpResult.otpauth_uri must start with 'otpauth://totp'"
            )


class SetupTwoFactorTotpUseCase:
    """
    SetupTwoFactorTotpUseCase — setup flow creating encrypted pending TOTP secret.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_repository.py
      - src/certusflow/contexts/identity/application/ports/two_factor_secret_cipher.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
    """

    def __init__(
        self,
        *,
        repository: TwoFactorRepository,
        secret_cipher: TwoFactorSecretCipher,
        totp_provider: TwoFactorTotpProvider,
        audit_recorder: TwoFactorAuditRecorder,
        clock: IdentityClock,
        issuer: str = "CertusFlow",
    ) -> None:
        """
        Initialize setup use-case dependencies and immutable issuer policy.

        Args:
            repository: 2FA persistence port.
            secret_cipher: Envelope encryption port for TOTP secret.
            totp_provider: Provider generating secrets and otpauth URI.
            audit_recorder: Fail-open audit writer.
            clock: UTC time source for `updated_at`.
            issuer: Issuer label used in authenticator apps.
        Returns:
            None.
        Assumptions:
            All dependencies are initialized and non-null.
        Raises:
            ValueError: If dependencies are missing or issuer is empty.
        Side Effects:
            None.
        """
        normalized_issuer = issuer.strip()
        if repository is None:  # type: ignore[truthy-bool]
            raise ValueError("SetupTwoFactorTotpUseCase requires repository")
        if secret_cipher is None:  # type: ignore[truthy-bool]
            raise ValueError("SetupTwoFactorTotpUseCase requires secret_cipher")
        if totp_provider is None:  # type: ignore[truthy-bool]
            raise ValueError("SetupTwoFactorTotpUseCase requires totp_provider")
        if audit_recorder is None:  # type: ignore[truthy-bool]
            raise ValueError("SetupTwoFactorTotpUseCase requires audit_recorder")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("SetupTwoFactorTotpUseCase requires clock")
        if not normalized_issuer:
            raise ValueError("SetupTwoFactorTotpUseCase requires non-empty issuer")

        self._repository = repository
        self._secret_cipher = secret_cipher
        self._totp_provider = totp_provider
        self._audit_recorder = audit_recorder
        self._clock = clock
        self._issuer = normalized_issuer

    def setup(
        self,
        *,
        user_id: UserId,
        account_label: str | None = None,
        client: ClientContext | None = None,
    ) -> SetupTwoFactorTotpResult:
        """
        Generate pending TOTP secret, persist encrypted blob, and return URI plus secret once.

        Args:
            user_id: Authenticated identity user id.
            account_label: Optional authenticator label (e-mail); defaults to user id.
            client: Optional request metadata for audit.
        Returns:
            SetupTwoFactorTotpResult: Provisioning payload or `already_enabled` failure.
        Assumptions:
            Enabled 2FA must be disabled before a new setup; pending setup may be refreshed.
        Raises:
            ValueError: If dependencies return invalid data.
        Side Effects:
            Writes `setup_initiated` audit event, then persists encrypted pending secret.
        """
        existing = self._repository.find_by_user_id(user_id=user_id)
        if existing is not None and existing.enabled:
            return self._reject(user_id=user_id, client=client)

        plaintext_secret = self._totp_provider.create_secret()
        secret_enc = self._secret_cipher.encrypt_secret(secret=plaintext_secret)
        now = _ensure_utc_datetime(value=self._clock.now(), field_name="clock.now")
        self._audit_recorder.record(
            user_id=user_id,
            event_type=TwoFactorAuditEventType.SETUP_INITIATED,
            success=True,
            client=client,
        )
        upserted = self._repository.upsert_pending_secret(
            user_id=user_id,
            totp_secret_enc=secret_enc,
            updated_at=now,
        )
        if upserted.enabled:
            log.info("identity 2fa setup lost race user_id=%s", user_id)
            return self._reject(user_id=user_id, client=client)

        label = account_label.strip() if account_label and account_label.strip() else None
        otpauth_uri = self._totp_provider.build_otpauth_uri(
            secret=plaintext_secret,
            account_label=label or str(user_id),
            issuer=self._issuer,
        )
        log.info("identity 2fa setup initiated user_id=%s", user_id)
        return SetupTwoFactorTotpResult(otpauth_uri=otpauth_uri, secret=plaintext_secret)

    def _reject(
        self,
        *,
        user_id: UserId,
        client: ClientContext | None,
    ) -> SetupTwoFactorTotpResult:
        self._audit_recorder.record(
            user_id=user_id,
            event_type=TwoFactorAuditEventType.SETUP_INITIATED,
            success=False,
            failure_kind=TWO_FACTOR_ALREADY_ENABLED.kind.value,
            client=client,
        )
        return SetupTwoFactorTotpResult(failure=TWO_FACTOR_ALREADY_ENABLED)


def _ensure_utc_datetime(*, value: datetime, field_name: str) -> datetime:
    """
    Validate datetime is timezone-aware UTC and return same value.

    Args:
        value: Datetime value to validate.
        field_name: Field label for deterministic error message.
    Returns:
        datetime: Same validated datetime.
    Assumptions:
        UTC datetimes have zero offset.
    Raises:
        ValueError: If datetime is naive or non-UTC.
    Side Effects:
        None.
    """
    offset = value.utcoffset()
    if value.tzinfo is None or offset is None:
        raise ValueError(f"{field_name} must be timezone-aware UTC datetime")
    if offset.total_seconds() != 0:
        raise ValueError(f"{field_name} must be UTC datetime")
    return value
