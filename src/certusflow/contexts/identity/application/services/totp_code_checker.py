from __future__ import annotations

import logging
from enum import Enum

from certusflow.contexts.identity.application.ports.clock import IdentityClock
from certusflow.contexts.identity.application.ports.two_factor_secret_cipher import (
    CorruptSecretError,
    TwoFactorSecretCipher,
)
from certusflow.contexts.identity.application.ports.two_factor_totp_provider import (
    TwoFactorTotpProvider,
)
from certusflow.shared_kernel.primitives import UserId

log = logging.getLogger(__name__)

TOTP_CODE_LENGTH = 6
_ASCII_DIGITS = frozenset("0123456789")


class TotpCheckOutcome(str, Enum):
    """
    Result of one TOTP code check against a stored encrypted secret.

    Docs: docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related: ..use_cases.verify_two_factor_totp, ..use_cases.login_two_factor_challenge
    """

    VALID = "valid"
    INVALID = "invalid"
    MALFORMED = "malformed"
    CORRUPT_SECRET = "corrupt_secret"


def normalize_totp_code(*, code: str) -> str | None:
    """
    Normalize submitted TOTP code and reject anything but six ASCII digits.

    Args:
        code: Raw user input.
    Returns:
        str | None: Normalized code, or `None` when input is malformed.
    Assumptions:
        Surrounding whitespace is tolerated; inner characters are not.
    Raises:
        None.
    Side Effects:
        None.
    """
    normalized = code.strip()
    if len(normalized) != TOTP_CODE_LENGTH:
        return None
    if not set(normalized) <= _ASCII_DIGITS:
        return None
    return normalized


class TotpCodeChecker:
    """
    TotpCodeChecker — format check, transient decrypt and drift-tolerant TOTP verification.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/verify_two_factor_totp.py
      - src/certusflow/contexts/identity/application/use_cases/disable_two_factor_totp.py
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
    """

    def __init__(
        self,
        *,
        secret_cipher: TwoFactorSecretCipher,
        totp_provider: TwoFactorTotpProvider,
        clock: IdentityClock,
    ) -> None:
        """
        Initialize checker dependencies.

        Args:
            secret_cipher: Envelope encryption port for TOTP secret.
            totp_provider: Provider verifying codes with named drift window.
            clock: UTC time source.
        Returns:
            None.
        Assumptions:
            All dependencies are initialized and non-null.
        Raises:
            ValueError: If dependencies are missing.
        Side Effects:
            None.
        """
        if secret_cipher is None:  # type: ignore[truthy-bool]
            raise ValueError("TotpCodeChecker requires secret_cipher")
        if totp_provider is None:  # type: ignore[truthy-bool]
            raise ValueError("TotpCodeChecker requires totp_provider")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("TotpCodeChecker requires clock")

        self._secret_cipher = secret_cipher
        self._totp_provider = totp_provider
        self._clock = clock

    def check(self, *, user_id: UserId, totp_secret_enc: bytes, code: str) -> TotpCheckOutcome:
        """
        Check submitted code against encrypted secret.

        Args:
            user_id: Owner of the secret, used for integrity logging only.
            totp_secret_enc: Stored encrypted secret blob.
            code: Raw user input.
        Returns:
            TotpCheckOutcome: `MALFORMED` before any crypto work, `CORRUPT_SECRET` when the blob
                fails authentication, otherwise `VALID` or `INVALID`.
        Assumptions:
            Decrypted plaintext is never logged or returned.
        Raises:
            ValueError: If clock returns non-UTC datetime.
        Side Effects:
            Emits error log for corrupt secrets.
        """
        normalized_code = normalize_totp_code(code=code)
        if normalized_code is None:
            return TotpCheckOutcome.MALFORMED

        try:
            secret = self._secret_cipher.decrypt_secret(secret_enc=totp_secret_enc)
        except CorruptSecretError:
            log.error("identity 2fa secret integrity failure user_id=%s", user_id)
            return TotpCheckOutcome.CORRUPT_SECRET

        now = self._clock.now()
        if self._totp_provider.verify_code(secret=secret, code=normalized_code, at_time=now):
            return TotpCheckOutcome.VALID
        return TotpCheckOutcome.INVALID
