from .identity import (
    IdentityApiModule,
    IdentityRuntimeSettings,
    IdentityTwoFactorMetrics,
    build_identity_api_module,
)

__all__ = [
    "IdentityApiModule",
    "IdentityRuntimeSettings",
    "IdentityTwoFactorMetrics",
    "build_identity_api_module",
]
