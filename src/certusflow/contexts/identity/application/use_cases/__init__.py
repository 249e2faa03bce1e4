from .disable_two_factor_totp import DisableTwoFactorTotpResult, DisableTwoFactorTotpUseCase
from .get_two_factor_status import GetTwoFactorStatusUseCase, TwoFactorStatus
from .login_two_factor_challenge import (
    LoginTwoFactorChallengeRequest,
    LoginTwoFactorChallengeResult,
    LoginTwoFactorChallengeUseCase,
    TwoFactorLoginHooks,
)
from .manage_trusted_devices import ManageTrustedDevicesUseCase, TrustedDeviceView
from .setup_two_factor_totp import SetupTwoFactorTotpResult, SetupTwoFactorTotpUseCase
from .two_factor_errors import TwoFactorFailure, TwoFactorFailureKind
from .verify_two_factor_totp import (
    BACKUP_CODE_BATCH_SIZE,
    VerifyTwoFactorTotpResult,
    VerifyTwoFactorTotpUseCase,
)

__all__ = [
    "BACKUP_CODE_BATCH_SIZE",
    "DisableTwoFactorTotpResult",
    "DisableTwoFactorTotpUseCase",
    "GetTwoFactorStatusUseCase",
    "LoginTwoFactorChallengeRequest",
    "LoginTwoFactorChallengeResult",
    "LoginTwoFactorChallengeUseCase",
    "ManageTrustedDevicesUseCase",
    "SetupTwoFactorTotpResult",
    "SetupTwoFactorTotpUseCase",
    "TrustedDeviceView",
    "TwoFactorFailure",
    "TwoFactorFailureKind",
    "TwoFactorLoginHooks",
    "TwoFactorStatus",
    "VerifyTwoFactorTotpResult",
    "VerifyTwoFactorTotpUseCase",
]
