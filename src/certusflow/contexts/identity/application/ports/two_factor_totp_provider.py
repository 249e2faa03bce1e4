from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TwoFactorTotpProvider(Protocol):
    """
    TwoFactorTotpProvider — порт операций RFC 6238 TOTP.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/setup_two_factor_totp.py
      - src/certusflow/contexts/identity/application/services/totp_code_checker.py
      - src/certusflow/contexts/identity/adapters/outbound/security/two_factor/
        pyotp_totp_provider.py
    """

    def create_secret(self) -> str:
        """
        Generate new TOTP base32 secret for setup flow.

        Args:
            None.
        Returns:
            str: New base32 secret with at least 160 bits of entropy.
        Assumptions:
            Secret generation uses cryptographically secure randomness.
        Raises:
            ValueError: If provider cannot generate valid secret.
        Side Effects:
            Uses cryptographically secure random source.
        """
        ...

    def build_otpauth_uri(self, *, secret: str, account_label: str, issuer: str) -> str:
        """
        Build standard otpauth URI for authenticator apps.

        Args:
            secret: Base32 TOTP secret.
            account_label: Account name shown in authenticator apps.
            issuer: Issuer label shown in authenticator apps.
        Returns:
            str: URI starting with `otpauth://totp`.
        Assumptions:
            URI string is returned once and never logged server-side.
        Raises:
            ValueError: If secret or metadata is invalid.
        Side Effects:
            None.
        """
        ...

    def verify_code(self, *, secret: str, code: str, at_time: datetime) -> bool:
        """
        Verify submitted TOTP code against plaintext secret at given UTC time.

        Args:
            secret: Base32 TOTP secret in plaintext form.
            code: Six-digit code, already format-checked by caller.
            at_time: Current UTC timestamp for verification.
        Returns:
            bool: `True` when code matches the current or an adjacent time step.
        Assumptions:
            Drift window is a provider-level named constant.
        Raises:
            ValueError: If provider receives malformed arguments.
        Side Effects:
            None.
        """
        ...
