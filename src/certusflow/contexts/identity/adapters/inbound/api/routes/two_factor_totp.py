from __future__ import annotations

from datetime import datetime
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from certusflow.contexts.identity.adapters.inbound.api.deps.client_context import (
    resolve_client_context,
)
from certusflow.contexts.identity.adapters.inbound.api.deps.current_user import (
    RequireCurrentUserDependency,
)
from certusflow.contexts.identity.application.ports.current_user import CurrentUserPrincipal
from certusflow.contexts.identity.application.services.two_factor_audit_recorder import (
    ClientContext,
)
from certusflow.contexts.identity.application.use_cases import (
    DisableTwoFactorTotpUseCase,
    GetTwoFactorStatusUseCase,
    SetupTwoFactorTotpUseCase,
    TwoFactorFailure,
    VerifyTwoFactorTotpUseCase,
)


class TwoFactorSetupResponse(BaseModel):
    """
    TwoFactorSetupResponse — API response payload for identity `POST /2fa/setup`.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/setup_two_factor_totp.py
      - apps/api/routes/identity.py
    """

    otpauth_uri: str
    secret: str


class TwoFactorCodeRequest(BaseModel):
    """
    TwoFactorCodeRequest — API request payload for `POST /2fa/verify` and `POST /2fa/disable`.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/verify_two_factor_totp.py
      - src/certusflow/contexts/identity/application/use_cases/disable_two_factor_totp.py
    """

    code: str


class TwoFactorVerifyResponse(BaseModel):
    """
    TwoFactorVerifyResponse — API response payload for successful 2FA enable flow.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/verify_two_factor_totp.py
      - apps/api/routes/identity.py
    """

    enabled: bool
    backup_codes: list[str]


class TwoFactorDisableResponse(BaseModel):
    disabled: bool


class TwoFactorStatusResponse(BaseModel):
    """
    TwoFactorStatusResponse — API response payload for `GET /2fa/status`.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/get_two_factor_status.py
    """

    enabled: bool
    verified_at: datetime | None
    backup_codes_remaining: int


def build_two_factor_totp_router(
    *,
    setup_use_case: SetupTwoFactorTotpUseCase,
    verify_use_case: VerifyTwoFactorTotpUseCase,
    disable_use_case: DisableTwoFactorTotpUseCase,
    status_use_case: GetTwoFactorStatusUseCase,
    current_user_dependency: RequireCurrentUserDependency,
) -> APIRouter:
    """
    Build router exposing identity 2FA TOTP enrollment endpoints.

    Args:
        setup_use_case: 2FA setup use-case dependency.
        verify_use_case: 2FA verify use-case dependency.
        disable_use_case: 2FA disable use-case dependency.
        status_use_case: 2FA status query dependency.
        current_user_dependency: Auth dependency for current user principal.
    Returns:
        APIRouter: Router with `/2fa/setup`, `/2fa/verify`, `/2fa/disable`, `/2fa/status`.
    Assumptions:
        Current user dependency enforces authenticated access token.
    Raises:
        ValueError: If required dependencies are missing.
    Side Effects:
        None.
    """
    if setup_use_case is None:  # type: ignore[truthy-bool]
        raise ValueError("build_two_factor_totp_router requires setup_use_case")
    if verify_use_case is None:  # type: ignore[truthy-bool]
        raise ValueError("build_two_factor_totp_router requires verify_use_case")
    if disable_use_case is None:  # type: ignore[truthy-bool]
        raise ValueError("build_two_factor_totp_router requires disable_use_case")
    if status_use_case is None:  # type: ignore[truthy-bool]
        raise ValueError("build_two_factor_totp_router requires status_use_case")
    if current_user_dependency is None:  # type: ignore[truthy-bool]
        raise ValueError("build_two_factor_totp_router requires current_user_dependency")

    router = APIRouter(tags=["identity"])

    @router.post("/2fa/setup", response_model=TwoFactorSetupResponse)
    def post_two_factor_setup(
        principal: CurrentUserPrincipal = Depends(current_user_dependency),
        client: ClientContext = Depends(resolve_client_context),
    ) -> TwoFactorSetupResponse:
        """
        Create or refresh pending TOTP setup and return otpauth URI plus manual-entry secret.

        Args:
            principal: Authenticated current user.
            client: Request metadata for audit.
        Returns:
            TwoFactorSetupResponse: Otpauth URI and base32 secret, disclosed once.
        Assumptions:
            Setup is rejected while 2FA is enabled.
        Raises:
            HTTPException: 409 when 2FA is already enabled.
        Side Effects:
            Persists encrypted TOTP secret and writes audit event.
        """
        result = setup_use_case.setup(
            user_id=principal.user_id,
            account_label=principal.email,
            client=client,
        )
        if result.failure is not None:
            _raise_failure(failure=result.failure)
        assert result.otpauth_uri is not None and result.secret is not None
        return TwoFactorSetupResponse(otpauth_uri=result.otpauth_uri, secret=result.secret)

    @router.post("/2fa/verify", response_model=TwoFactorVerifyResponse)
    def post_two_factor_verify(
        request: TwoFactorCodeRequest,
        principal: CurrentUserPrincipal = Depends(current_user_dependency),
        client: ClientContext = Depends(resolve_client_context),
    ) -> TwoFactorVerifyResponse:
        """
        Verify submitted TOTP code, enable 2FA and disclose backup codes once.

        Args:
            request: Submitted 6-digit TOTP code payload.
            principal: Authenticated current user.
            client: Request metadata for audit.
        Returns:
            TwoFactorVerifyResponse: Enabled marker and backup codes in `XXXX-XXXX` form.
        Assumptions:
            Setup flow was completed and encrypted secret exists in storage.
        Raises:
            HTTPException: Deterministic 4xx/5xx payload on policy/input/integrity errors.
        Side Effects:
            Enables 2FA and stores backup code hashes.
        """
        result = verify_use_case.verify(user_id=principal.user_id, code=request.code, client=client)
        if result.failure is not None:
            _raise_failure(failure=result.failure)
        return TwoFactorVerifyResponse(
            enabled=result.enabled,
            backup_codes=[_format_backup_code(code=code) for code in result.backup_codes],
        )

    @router.post("/2fa/disable", response_model=TwoFactorDisableResponse)
    def post_two_factor_disable(
        request: TwoFactorCodeRequest,
        principal: CurrentUserPrincipal = Depends(current_user_dependency),
        client: ClientContext = Depends(resolve_client_context),
    ) -> TwoFactorDisableResponse:
        """
        Disable 2FA after a valid current TOTP code.

        Args:
            request: Submitted 6-digit TOTP code payload.
            principal: Authenticated current user.
            client: Request metadata for audit.
        Returns:
            TwoFactorDisableResponse: Disabled marker payload.
        Assumptions:
            Backup codes are not accepted here.
        Raises:
            HTTPException: Deterministic 4xx/5xx payload on policy/input/integrity errors.
        Side Effects:
            Deletes 2FA record and writes audit events.
        """
        result = disable_use_case.disable(
            user_id=principal.user_id,
            code=request.code,
            client=client,
        )
        if result.failure is not None:
            _raise_failure(failure=result.failure)
        return TwoFactorDisableResponse(disabled=result.disabled)

    @router.get("/2fa/status", response_model=TwoFactorStatusResponse)
    def get_two_factor_status(
        principal: CurrentUserPrincipal = Depends(current_user_dependency),
    ) -> TwoFactorStatusResponse:
        status = status_use_case.status(user_id=principal.user_id)
        return TwoFactorStatusResponse(
            enabled=status.enabled,
            verified_at=status.verified_at,
            backup_codes_remaining=status.backup_codes_remaining,
        )

    return router


def _format_backup_code(*, code: str) -> str:
    half = len(code) // 2
    return f"{code[:half]}-{code[half:]}"


def _raise_failure(*, failure: TwoFactorFailure) -> NoReturn:
    raise HTTPException(status_code=failure.status_code, detail=failure.payload())
