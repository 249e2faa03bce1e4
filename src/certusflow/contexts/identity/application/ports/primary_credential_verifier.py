from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from certusflow.shared_kernel.primitives import UserId


@dataclass(frozen=True, slots=True)
class PrimaryCredentialSession:
    """
    PrimaryCredentialSession — сессия, выданная внешним провайдером после проверки пароля.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/outbound/security/primary_auth/
        gotrue_primary_credential_verifier.py
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
    """

    user_id: UserId
    email: str
    access_token: str = field(repr=False)
    expires_at: datetime

    def __post_init__(self) -> None:
        """
        Validate session fields.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Access token is opaque to this subsystem.
        Raises:
            ValueError: If token is blank or expiry is not UTC.
        Side Effects:
            None.
        """
        if not self.access_token.strip():
            raise ValueError("PrimaryCredentialSession.access_token must be non-empty")
        offset = self.expires_at.utcoffset()
        if self.expires_at.tzinfo is None or offset is None or offset.total_seconds() != 0:
            raise ValueError("PrimaryCredentialSession.expires_at must be timezone-aware UTC")


class PrimaryCredentialVerifierError(RuntimeError):
    """
    PrimaryCredentialVerifierError — внешний провайдер недоступен или ответил неожиданно.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/outbound/security/primary_auth/
        gotrue_primary_credential_verifier.py
    """


class PrimaryCredentialVerifier(Protocol):
    """
    PrimaryCredentialVerifier — порт внешней проверки email/пароля и отзыва сессии.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
      - src/certusflow/contexts/identity/adapters/outbound/security/primary_auth/
        gotrue_primary_credential_verifier.py
    """

    def verify(self, *, email: str, password: str) -> PrimaryCredentialSession | None:
        """
        Verify primary credentials and open a session.

        Args:
            email: Account e-mail.
            password: Account password.
        Returns:
            PrimaryCredentialSession | None: Session, or `None` for invalid credentials.
        Assumptions:
            Unknown accounts and wrong passwords are indistinguishable.
        Raises:
            PrimaryCredentialVerifierError: If provider is unavailable.
        Side Effects:
            Creates a session at the provider.
        """
        ...

    def revoke(self, *, session: PrimaryCredentialSession) -> None:
        """
        Revoke a session opened by `verify`.

        Args:
            session: Session to revoke.
        Returns:
            None.
        Assumptions:
            Revocation is idempotent.
        Raises:
            PrimaryCredentialVerifierError: If provider rejects or is unavailable.
        Side Effects:
            Invalidates session at the provider.
        """
        ...
