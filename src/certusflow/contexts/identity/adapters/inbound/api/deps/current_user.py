from fastapi import HTTPException
from starlette.requests import Request

from certusflow.contexts.identity.application.ports.current_user import (
    CurrentUser,
    CurrentUserPrincipal,
    CurrentUserUnauthorizedError,
)

_BEARER_PREFIX = "bearer "


class RequireCurrentUserDependency:
    """
    RequireCurrentUserDependency — FastAPI dependency resolving authenticated identity user.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/current_user.py
      - src/certusflow/contexts/identity/adapters/outbound/security/current_user/
        jwt_bearer_current_user.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
    """

    def __init__(self, *, current_user: CurrentUser, cookie_name: str) -> None:
        """
        Initialize dependency with current-user port and cookie key.

        Args:
            current_user: Port resolving user principal from access token.
            cookie_name: Cookie key where access token may be stored.
        Returns:
            None.
        Assumptions:
            `Authorization: Bearer` header takes precedence over cookie.
        Raises:
            ValueError: If dependencies are invalid.
        Side Effects:
            None.
        """
        normalized_cookie_name = cookie_name.strip()
        if current_user is None:  # type: ignore[truthy-bool]
            raise ValueError("RequireCurrentUserDependency requires current_user")
        if not normalized_cookie_name:
            raise ValueError("RequireCurrentUserDependency requires non-empty cookie_name")

        self._current_user = current_user
        self._cookie_name = normalized_cookie_name

    def __call__(self, request: Request) -> CurrentUserPrincipal:
        """
        Resolve authenticated principal from bearer header or cookie.

        Args:
            request: FastAPI HTTP request.
        Returns:
            CurrentUserPrincipal: Verified user context.
        Assumptions:
            Access token was issued by the primary provider.
        Raises:
            HTTPException: 401 with deterministic payload for unauthorized requests.
        Side Effects:
            None.
        """
        token = _bearer_token(request=request) or request.cookies.get(self._cookie_name)
        try:
            return self._current_user.require(token=token)
        except CurrentUserUnauthorizedError as error:
            raise HTTPException(
                status_code=401,
                detail={
                    "error": error.code,
                    "message": error.message,
                },
            ) from error


def _bearer_token(*, request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    if header[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    token = header[len(_BEARER_PREFIX) :].strip()
    return token or None
