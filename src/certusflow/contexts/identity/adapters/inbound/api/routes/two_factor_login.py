from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from starlette.requests import Request

from certusflow.contexts.identity.adapters.inbound.api.deps.client_context import (
    resolve_client_context,
)
from certusflow.contexts.identity.application.ports.primary_credential_verifier import (
    PrimaryCredentialVerifierError,
)
from certusflow.contexts.identity.application.services.two_factor_audit_recorder import (
    ClientContext,
)
from certusflow.contexts.identity.application.use_cases import (
    LoginTwoFactorChallengeRequest,
    LoginTwoFactorChallengeUseCase,
)


class TwoFactorLoginRequest(BaseModel):
    """
    TwoFactorLoginRequest — API request payload for identity `POST /2fa/login`.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
      - apps/api/routes/identity.py
    """

    email: str
    password: str = Field(repr=False)
    code: str | None = Field(default=None, repr=False)
    is_backup_code: bool = False
    trust_this_device: bool = False


class TwoFactorLoginResponse(BaseModel):
    """
    TwoFactorLoginResponse — API response payload for successful login.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
    """

    access_token: str
    user_id: str
    expires_at: datetime
    two_factor_required: bool
    trusted_device_bypass: bool


def build_two_factor_login_router(
    *,
    login_use_case: LoginTwoFactorChallengeUseCase,
    cookie_name: str,
    trusted_device_cookie_name: str,
    cookie_secure: bool,
    cookie_samesite: Literal["lax", "strict", "none"] = "lax",
    cookie_path: str = "/",
) -> APIRouter:
    """
    Build router exposing password + second-factor login endpoint.

    Args:
        login_use_case: Login orchestrator dependency.
        cookie_name: Access-token cookie key.
        trusted_device_cookie_name: Trusted-device token cookie key.
        cookie_secure: Cookie secure flag.
        cookie_samesite: Cookie SameSite mode.
        cookie_path: Cookie path.
    Returns:
        APIRouter: Router with `/2fa/login`.
    Assumptions:
        Both cookies are HttpOnly and share path/secure/samesite settings.
    Raises:
        ValueError: If required dependencies are missing.
    Side Effects:
        None.
    """
    if login_use_case is None:  # type: ignore[truthy-bool]
        raise ValueError("build_two_factor_login_router requires login_use_case")
    normalized_cookie_name = cookie_name.strip()
    normalized_device_cookie_name = trusted_device_cookie_name.strip()
    normalized_cookie_path = cookie_path.strip()
    if not normalized_cookie_name:
        raise ValueError("build_two_factor_login_router requires non-empty cookie_name")
    if not normalized_device_cookie_name:
        raise ValueError(
            "build_two_factor_login_router requires non-empty trusted_device_cookie_name"
        )
    if not normalized_cookie_path:
        raise ValueError("build_two_factor_login_router requires non-empty cookie_path")

    router = APIRouter(tags=["identity"])

    @router.post("/2fa/login", response_model=TwoFactorLoginResponse)
    def post_two_factor_login(
        request: TwoFactorLoginRequest,
        http_request: Request,
        response: Response,
        client: ClientContext = Depends(resolve_client_context),
    ) -> TwoFactorLoginResponse:
        """
        Verify primary credentials and second factor, then set session cookies.

        Args:
            request: Login payload.
            http_request: Raw request used to read trusted-device cookie.
            response: FastAPI response object for setting cookies.
            client: Request metadata for audit and device trust.
        Returns:
            TwoFactorLoginResponse: Access token and second-factor markers.
        Assumptions:
            Failure payloads do not reveal which factor was wrong.
        Raises:
            HTTPException: 401 on failed login, 503 when primary provider is unavailable.
        Side Effects:
            Sets access-token cookie; sets trusted-device cookie when a device was trusted.
        """
        try:
            result = login_use_case.login(
                request=LoginTwoFactorChallengeRequest(
                    email=request.email,
                    password=request.password,
                    code=request.code,
                    is_backup_code=request.is_backup_code,
                    trust_this_device=request.trust_this_device,
                    trusted_device_token=http_request.cookies.get(normalized_device_cookie_name),
                    client=client,
                )
            )
        except PrimaryCredentialVerifierError as error:
            raise HTTPException(
                status_code=503,
                detail={
                    "error": "primary_auth_unavailable",
                    "message": "Authentication service is unavailable.",
                },
            ) from error

        if result.failure is not None:
            raise HTTPException(
                status_code=result.failure.status_code,
                detail=result.failure.payload(),
            )
        session = result.session
        assert session is not None

        max_age_seconds = _resolve_cookie_max_age_seconds(expires_at=session.expires_at)
        response.set_cookie(
            key=normalized_cookie_name,
            value=session.access_token,
            max_age=max_age_seconds,
            expires=max_age_seconds,
            path=normalized_cookie_path,
            secure=cookie_secure,
            httponly=True,
            samesite=cookie_samesite,
        )
        if result.trusted_device is not None:
            device_max_age = _resolve_cookie_max_age_seconds(
                expires_at=result.trusted_device.expires_at
            )
            response.set_cookie(
                key=normalized_device_cookie_name,
                value=result.trusted_device.token,
                max_age=device_max_age,
                expires=device_max_age,
                path=normalized_cookie_path,
                secure=cookie_secure,
                httponly=True,
                samesite=cookie_samesite,
            )

        return TwoFactorLoginResponse(
            access_token=session.access_token,
            user_id=str(session.user_id),
            expires_at=session.expires_at,
            two_factor_required=result.two_factor_required,
            trusted_device_bypass=result.trusted_device_bypass,
        )

    return router


def _resolve_cookie_max_age_seconds(*, expires_at: datetime) -> int:
    """
    Resolve non-negative cookie max-age from expiration timestamp.

    Args:
        expires_at: UTC expiration datetime.
    Returns:
        int: Positive max-age in seconds.
    Assumptions:
        Expiration is set in the future relative to current UTC time.
    Raises:
        ValueError: If expiration datetime is naive/non-UTC.
    Side Effects:
        Reads current system UTC time.
    """
    offset = expires_at.utcoffset()
    if expires_at.tzinfo is None or offset is None or offset.total_seconds() != 0:
        raise ValueError("_resolve_cookie_max_age_seconds requires UTC expiration datetime")
    seconds = int((expires_at - datetime.now(timezone.utc)).total_seconds())
    return max(1, seconds)
