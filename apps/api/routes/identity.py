"""
Identity API routes.

Docs:
  - docs/architecture/identity/identity-2fa-device-trust-v1.md
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter

from certusflow.contexts.identity.adapters.inbound.api.deps import RequireCurrentUserDependency
from certusflow.contexts.identity.adapters.inbound.api.routes import (
    build_trusted_devices_router,
    build_two_factor_login_router,
    build_two_factor_totp_router,
)
from certusflow.contexts.identity.application.use_cases import (
    DisableTwoFactorTotpUseCase,
    GetTwoFactorStatusUseCase,
    LoginTwoFactorChallengeUseCase,
    ManageTrustedDevicesUseCase,
    SetupTwoFactorTotpUseCase,
    VerifyTwoFactorTotpUseCase,
)


def build_identity_router(
    *,
    two_factor_setup: SetupTwoFactorTotpUseCase,
    two_factor_verify: VerifyTwoFactorTotpUseCase,
    two_factor_disable: DisableTwoFactorTotpUseCase,
    two_factor_status: GetTwoFactorStatusUseCase,
    two_factor_login: LoginTwoFactorChallengeUseCase,
    manage_trusted_devices: ManageTrustedDevicesUseCase,
    current_user_dependency: RequireCurrentUserDependency,
    cookie_name: str,
    trusted_device_cookie_name: str,
    cookie_secure: bool,
    cookie_samesite: Literal["lax", "strict", "none"] = "lax",
    cookie_path: str = "/",
) -> APIRouter:
    """
    Build identity router facade for FastAPI app composition root.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_login.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/trusted_devices.py
      - apps/api/wiring/modules/identity.py

    Args:
        two_factor_setup: 2FA setup use-case.
        two_factor_verify: 2FA verify use-case.
        two_factor_disable: 2FA disable use-case.
        two_factor_status: 2FA status use-case.
        two_factor_login: Login challenge use-case.
        manage_trusted_devices: Trusted devices management use-case.
        current_user_dependency: FastAPI dependency resolving authenticated principal.
        cookie_name: Access token cookie key.
        trusted_device_cookie_name: Trusted device token cookie key.
        cookie_secure: Cookie secure flag.
        cookie_samesite: Cookie SameSite mode.
        cookie_path: Cookie path.
    Returns:
        APIRouter: Configured identity router.
    Assumptions:
        All identity routes share one current-user dependency instance.
    Raises:
        ValueError: If one of sub-router builders rejects its dependencies.
    Side Effects:
        None.
    """
    router = APIRouter()
    router.include_router(
        build_two_factor_totp_router(
            setup_use_case=two_factor_setup,
            verify_use_case=two_factor_verify,
            disable_use_case=two_factor_disable,
            status_use_case=two_factor_status,
            current_user_dependency=current_user_dependency,
        )
    )
    router.include_router(
        build_two_factor_login_router(
            login_use_case=two_factor_login,
            cookie_name=cookie_name,
            trusted_device_cookie_name=trusted_device_cookie_name,
            cookie_secure=cookie_secure,
            cookie_samesite=cookie_samesite,
            cookie_path=cookie_path,
        )
    )
    router.include_router(
        build_trusted_devices_router(
            manage_use_case=manage_trusted_devices,
            current_user_dependency=current_user_dependency,
        )
    )
    return router
