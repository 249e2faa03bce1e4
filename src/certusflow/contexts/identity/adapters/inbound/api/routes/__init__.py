from .trusted_devices import (
    TrustedDeviceListResponse,
    TrustedDeviceResponse,
    build_trusted_devices_router,
)
from .two_factor_login import (
    TwoFactorLoginRequest,
    TwoFactorLoginResponse,
    build_two_factor_login_router,
)
from .two_factor_totp import (
    TwoFactorCodeRequest,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
    TwoFactorVerifyResponse,
    build_two_factor_totp_router,
)

__all__ = [
    "TrustedDeviceListResponse",
    "TrustedDeviceResponse",
    "TwoFactorCodeRequest",
    "TwoFactorLoginRequest",
    "TwoFactorLoginResponse",
    "TwoFactorSetupResponse",
    "TwoFactorStatusResponse",
    "TwoFactorVerifyResponse",
    "build_trusted_devices_router",
    "build_two_factor_login_router",
    "build_two_factor_totp_router",
]
