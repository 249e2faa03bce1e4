from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TwoFactorFailureKind(str, Enum):
    """
    Internal failure taxonomy recorded in audit log and logs, never shown to end users.

    Docs: docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related: .setup_two_factor_totp, .verify_two_factor_totp, .login_two_factor_challenge
    """

    INPUT_FORMAT = "input_format"
    AUTHORIZATION = "authorization"
    STATE = "state"
    INTEGRITY = "integrity"


@dataclass(frozen=True, slots=True)
class TwoFactorFailure:
    """
    TwoFactorFailure — explicit failure outcome returned by 2FA use-cases.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/verify_two_factor_totp.py
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
    """

    kind: TwoFactorFailureKind
    code: str
    message: str
    status_code: int

    def payload(self) -> dict[str, str]:
        """
        Build deterministic HTTP error payload with stable key order.

        Args:
            None.
        Returns:
            dict[str, str]: `{"error": "...", "message": "..."}` payload.
        Assumptions:
            Payload is consumed by FastAPI HTTPException `detail`; `kind` stays internal.
        Raises:
            None.
        Side Effects:
            None.
        """
        return {
            "error": self.code,
            "message": self.message,
        }


_INVALID_CODE = "invalid_two_factor_code"
_INVALID_CODE_MESSAGE = "Invalid two-factor authentication code."

TWO_FACTOR_ALREADY_ENABLED = TwoFactorFailure(
    kind=TwoFactorFailureKind.STATE,
    code="two_factor_already_enabled",
    message="Two-factor authentication is already enabled.",
    status_code=409,
)
TWO_FACTOR_SETUP_REQUIRED = TwoFactorFailure(
    kind=TwoFactorFailureKind.STATE,
    code="two_factor_setup_required",
    message="Two-factor setup must be completed first.",
    status_code=422,
)
TWO_FACTOR_NOT_ENABLED = TwoFactorFailure(
    kind=TwoFactorFailureKind.STATE,
    code="two_factor_not_enabled",
    message="Two-factor authentication is not enabled.",
    status_code=409,
)

# Malformed and wrong codes share one payload so responses are not an oracle.
MALFORMED_TWO_FACTOR_CODE = TwoFactorFailure(
    kind=TwoFactorFailureKind.INPUT_FORMAT,
    code=_INVALID_CODE,
    message=_INVALID_CODE_MESSAGE,
    status_code=422,
)
INVALID_TWO_FACTOR_CODE = TwoFactorFailure(
    kind=TwoFactorFailureKind.AUTHORIZATION,
    code=_INVALID_CODE,
    message=_INVALID_CODE_MESSAGE,
    status_code=422,
)

TWO_FACTOR_VERIFY_UNAVAILABLE = TwoFactorFailure(
    kind=TwoFactorFailureKind.INTEGRITY,
    code="two_factor_verify_failed",
    message="Failed to verify two-factor authentication.",
    status_code=500,
)
TWO_FACTOR_DISABLE_UNAVAILABLE = TwoFactorFailure(
    kind=TwoFactorFailureKind.INTEGRITY,
    code="two_factor_disable_failed",
    message="Failed to disable two-factor authentication.",
    status_code=500,
)

INVALID_PRIMARY_CREDENTIALS = TwoFactorFailure(
    kind=TwoFactorFailureKind.AUTHORIZATION,
    code="invalid_credentials",
    message="Invalid email or password.",
    status_code=401,
)
LOGIN_TWO_FACTOR_REQUIRED = TwoFactorFailure(
    kind=TwoFactorFailureKind.STATE,
    code="two_factor_required",
    message="Two-factor authentication code required.",
    status_code=401,
)
LOGIN_MALFORMED_CODE = TwoFactorFailure(
    kind=TwoFactorFailureKind.INPUT_FORMAT,
    code=_INVALID_CODE,
    message=_INVALID_CODE_MESSAGE,
    status_code=401,
)
LOGIN_INVALID_CODE = TwoFactorFailure(
    kind=TwoFactorFailureKind.AUTHORIZATION,
    code=_INVALID_CODE,
    message=_INVALID_CODE_MESSAGE,
    status_code=401,
)
LOGIN_SECRET_UNREADABLE = TwoFactorFailure(
    kind=TwoFactorFailureKind.INTEGRITY,
    code=_INVALID_CODE,
    message=_INVALID_CODE_MESSAGE,
    status_code=401,
)
