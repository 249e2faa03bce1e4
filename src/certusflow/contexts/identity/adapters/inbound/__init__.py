from .api import (
    RequireCurrentUserDependency,
    build_trusted_devices_router,
    build_two_factor_login_router,
    build_two_factor_totp_router,
    resolve_client_context,
)

__all__ = [
    "RequireCurrentUserDependency",
    "build_trusted_devices_router",
    "build_two_factor_login_router",
    "build_two_factor_totp_router",
    "resolve_client_context",
]
