from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import httpx

from certusflow.contexts.identity.application.ports.clock import IdentityClock
from certusflow.contexts.identity.application.ports.primary_credential_verifier import (
    PrimaryCredentialSession,
    PrimaryCredentialVerifier,
    PrimaryCredentialVerifierError,
)
from certusflow.shared_kernel.primitives import UserId

log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 10.0
_INVALID_CREDENTIALS_STATUSES = frozenset({400, 401, 422})
_ALREADY_REVOKED_STATUSES = frozenset({401, 403, 404})


class GoTruePrimaryCredentialVerifier(PrimaryCredentialVerifier):
    """
    GoTruePrimaryCredentialVerifier — password grant и logout против GoTrue-совместимого API.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/primary_credential_verifier.py
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
      - apps/api/wiring/modules/identity.py
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        clock: IdentityClock,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize verifier with provider endpoint and API key.

        Args:
            base_url: Provider base URL, e.g. `https://<project>.supabase.co/auth/v1`.
            api_key: Value for the `apikey` header.
            clock: UTC clock used when provider omits absolute expiry.
            timeout_seconds: Per-request timeout.
            transport: Optional httpx transport (tests pass `httpx.MockTransport`).
        Returns:
            None.
        Assumptions:
            One pooled client per process.
        Raises:
            ValueError: If configuration values are blank or non-positive.
        Side Effects:
            Creates an `httpx.Client`.
        """
        normalized_url = base_url.strip().rstrip("/")
        normalized_key = api_key.strip()
        if not normalized_url:
            raise ValueError("GoTruePrimaryCredentialVerifier requires non-empty base_url")
        if not normalized_key:
            raise ValueError("GoTruePrimaryCredentialVerifier requires non-empty api_key")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("GoTruePrimaryCredentialVerifier requires clock")
        if timeout_seconds <= 0:
            raise ValueError("GoTruePrimaryCredentialVerifier requires timeout_seconds > 0")

        self._clock = clock
        self._client = httpx.Client(
            base_url=normalized_url,
            timeout=timeout_seconds,
            headers={"apikey": normalized_key},
            transport=transport,
        )

    def verify(self, *, email: str, password: str) -> PrimaryCredentialSession | None:
        """
        Exchange email/password for provider session via password grant.

        Args:
            email: Account e-mail.
            password: Account password.
        Returns:
            PrimaryCredentialSession | None: Session or `None` for rejected credentials.
        Assumptions:
            Provider answers 400 for unknown accounts and wrong passwords alike.
        Raises:
            PrimaryCredentialVerifierError: On transport errors, 5xx, or malformed body.
        Side Effects:
            One HTTP request; creates a session at the provider.
        """
        normalized_email = email.strip()
        if not normalized_email or not password:
            return None
        try:
            response = self._client.post(
                "/token",
                params={"grant_type": "password"},
                json={"email": normalized_email, "password": password},
            )
        except httpx.HTTPError as error:
            raise PrimaryCredentialVerifierError("primary auth provider is unreachable") from error

        if response.status_code in _INVALID_CREDENTIALS_STATUSES:
            log.info("identity primary auth rejected status=%s", response.status_code)
            return None
        if response.status_code != 200:
            raise PrimaryCredentialVerifierError(
                f"primary auth provider answered status={response.status_code}"
            )
        try:
            body = response.json()
        except ValueError as error:
            raise PrimaryCredentialVerifierError(
                "primary auth provider returned non-JSON body"
            ) from error
        return self._map_session(body=body, fallback_email=normalized_email)

    def revoke(self, *, session: PrimaryCredentialSession) -> None:
        """
        Log out provider session with `scope=local`.

        Args:
            session: Session to revoke.
        Returns:
            None.
        Assumptions:
            Already-invalid sessions count as revoked.
        Raises:
            PrimaryCredentialVerifierError: On transport errors or unexpected status.
        Side Effects:
            One HTTP request; invalidates the session at the provider.
        """
        try:
            response = self._client.post(
                "/logout",
                params={"scope": "local"},
                headers={"Authorization": f"Bearer {session.access_token}"},
            )
        except httpx.HTTPError as error:
            raise PrimaryCredentialVerifierError("primary auth provider is unreachable") from error
        if response.status_code in _ALREADY_REVOKED_STATUSES:
            return
        if response.status_code >= 300:
            raise PrimaryCredentialVerifierError(
                f"primary auth logout answered status={response.status_code}"
            )

    def close(self) -> None:
        self._client.close()

    def _map_session(
        self,
        *,
        body: Any,
        fallback_email: str,
    ) -> PrimaryCredentialSession:
        """
        Map password-grant JSON body into session value object.

        Args:
            body: Decoded JSON body.
            fallback_email: Submitted e-mail used when body omits `user.email`.
        Returns:
            PrimaryCredentialSession: Mapped session.
        Assumptions:
            Body carries `access_token`, `user.id` and `expires_at` or `expires_in`.
        Raises:
            PrimaryCredentialVerifierError: If required fields are missing or malformed.
        Side Effects:
            Reads clock when only `expires_in` is present.
        """
        try:
            if not isinstance(body, Mapping):
                raise TypeError("password grant body must be an object")
            user = body["user"]
            expires_at_raw = body.get("expires_at")
            if expires_at_raw is not None:
                expires_at = datetime.fromtimestamp(int(expires_at_raw), tz=timezone.utc)
            else:
                expires_at = self._clock.now() + timedelta(seconds=int(body["expires_in"]))
            return PrimaryCredentialSession(
                user_id=UserId.from_string(str(user["id"])),
                email=str(user.get("email") or fallback_email),
                access_token=str(body["access_token"]),
                expires_at=expires_at,
            )
        except (KeyError, TypeError, ValueError, OverflowError) as error:
            raise PrimaryCredentialVerifierError(
                "primary auth provider returned malformed session"
            ) from error
