from .modules import (
    IdentityApiModule,
    IdentityTwoFactorMetrics,
    build_identity_api_module,
)

__all__ = [
    "IdentityApiModule",
    "IdentityTwoFactorMetrics",
    "build_identity_api_module",
]
