from __future__ import annotations

from datetime import datetime

import pyotp

from certusflow.contexts.identity.application.ports.two_factor_totp_provider import (
    TwoFactorTotpProvider,
)

TOTP_DIGITS = 6
TOTP_PERIOD_SECONDS = 30
TOTP_VALID_WINDOW_STEPS = 1


class PyOtpTwoFactorTotpProvider(TwoFactorTotpProvider):
    """
    PyOtpTwoFactorTotpProvider — RFC 6238 TOTP provider backed by pyotp.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_totp_provider.py
      - src/certusflow/contexts/identity/application/use_cases/setup_two_factor_totp.py
      - src/certusflow/contexts/identity/application/services/totp_code_checker.py
    """

    def __init__(self, *, valid_window: int = TOTP_VALID_WINDOW_STEPS) -> None:
        """
        Initialize provider with accepted clock drift in time steps.

        Args:
            valid_window: Number of 30-second steps accepted before/after current step.
        Returns:
            None.
        Assumptions:
            Digits and period are fixed to authenticator app defaults.
        Raises:
            ValueError: If window is negative.
        Side Effects:
            None.
        """
        if valid_window < 0:
            raise ValueError("PyOtpTwoFactorTotpProvider valid_window must be >= 0")
        self._valid_window = valid_window

    def create_secret(self) -> str:
        secret = pyotp.random_base32().strip().upper()
        if not secret:
            raise ValueError("PyOtpTwoFactorTotpProvider generated empty secret")
        return secret

    def build_otpauth_uri(self, *, secret: str, account_label: str, issuer: str) -> str:
        """
        Build standard otpauth URI for QR rendering.

        Args:
            secret: Base32 TOTP secret.
            account_label: Account name shown in authenticator apps.
            issuer: Issuer label shown in authenticator apps.
        Returns:
            str: URI string starting with `otpauth://totp`.
        Assumptions:
            pyotp percent-encodes label and issuer.
        Raises:
            ValueError: If secret, label or issuer is empty.
        Side Effects:
            None.
        """
        normalized_secret = secret.strip().upper()
        normalized_label = account_label.strip()
        normalized_issuer = issuer.strip()
        if not normalized_secret:
            raise ValueError("PyOtpTwoFactorTotpProvider requires non-empty secret")
        if not normalized_label:
            raise ValueError("PyOtpTwoFactorTotpProvider requires non-empty account_label")
        if not normalized_issuer:
            raise ValueError("PyOtpTwoFactorTotpProvider requires non-empty issuer")
        totp = pyotp.TOTP(normalized_secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD_SECONDS)
        return totp.provisioning_uri(name=normalized_label, issuer_name=normalized_issuer)

    def verify_code(self, *, secret: str, code: str, at_time: datetime) -> bool:
        """
        Verify TOTP code for provided UTC timestamp within the drift window.

        Args:
            secret: Base32 TOTP secret.
            code: Six-digit code already format-checked by caller.
            at_time: Current timezone-aware UTC datetime.
        Returns:
            bool: `True` when code matches step `t-1`, `t` or `t+1`.
        Assumptions:
            pyotp compares candidate codes in constant time.
        Raises:
            ValueError: If timestamp is not UTC or secret/code are empty.
        Side Effects:
            None.
        """
        normalized_secret = secret.strip().upper()
        normalized_code = code.strip()
        if not normalized_secret:
            raise ValueError("PyOtpTwoFactorTotpProvider verify requires non-empty secret")
        if not normalized_code:
            raise ValueError("PyOtpTwoFactorTotpProvider verify requires non-empty code")
        now = _ensure_utc_datetime(value=at_time, field_name="at_time")
        totp = pyotp.TOTP(normalized_secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD_SECONDS)
        return bool(
            totp.verify(
                normalized_code,
                for_time=int(now.timestamp()),
                valid_window=self._valid_window,
            )
        )


def _ensure_utc_datetime(*, value: datetime, field_name: str) -> datetime:
    offset = value.utcoffset()
    if value.tzinfo is None or offset is None:
        raise ValueError(f"{field_name} must be timezone-aware UTC datetime")
    if offset.total_seconds() != 0:
        raise ValueError(f"{field_name} must be UTC datetime")
    return value
