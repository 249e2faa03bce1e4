from .deps import RequireCurrentUserDependency, resolve_client_context
from .routes import (
    build_trusted_devices_router,
    build_two_factor_login_router,
    build_two_factor_totp_router,
)

__all__ = [
    "RequireCurrentUserDependency",
    "build_trusted_devices_router",
    "build_two_factor_login_router",
    "build_two_factor_totp_router",
    "resolve_client_context",
]
