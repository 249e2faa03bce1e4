from __future__ import annotations

from certusflow.contexts.identity.application.ports.current_user import (
    CurrentUser,
    CurrentUserPrincipal,
    CurrentUserUnauthorizedError,
)
from certusflow.contexts.identity.application.ports.jwt_codec import JwtCodec, JwtDecodeError


class JwtBearerCurrentUser(CurrentUser):
    """
    JwtBearerCurrentUser — CurrentUser adapter resolving principal from provider access token.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/current_user.py
      - src/certusflow/contexts/identity/adapters/outbound/security/jwt/hs256_jwt_codec.py
      - src/certusflow/contexts/identity/adapters/inbound/api/deps/current_user.py
    """

    def __init__(self, *, jwt_codec: JwtCodec) -> None:
        if jwt_codec is None:  # type: ignore[truthy-bool]
            raise ValueError("JwtBearerCurrentUser requires jwt_codec")
        self._jwt_codec = jwt_codec

    def require(self, *, token: str | None) -> CurrentUserPrincipal:
        """
        Decode access token into authenticated principal.

        Args:
            token: Access token from cookie or `Authorization: Bearer` header.
        Returns:
            CurrentUserPrincipal: Authenticated user context.
        Assumptions:
            Decoder errors map 1:1 to unauthorized error codes.
        Raises:
            CurrentUserUnauthorizedError: If token is missing, malformed, or expired.
        Side Effects:
            None.
        """
        if token is None or not token.strip():
            raise CurrentUserUnauthorizedError(
                code="missing_token",
                message="Authentication token is missing",
            )
        try:
            claims = self._jwt_codec.decode(token=token)
        except JwtDecodeError as error:
            raise CurrentUserUnauthorizedError(code=error.code, message=error.message) from error
        return CurrentUserPrincipal(user_id=claims.user_id, email=claims.email)
