from __future__ import annotations

import logging

from certusflow.contexts.identity.application.ports.primary_credential_verifier import (
    PrimaryCredentialSession,
    PrimaryCredentialVerifier,
)

log = logging.getLogger(__name__)


class RejectAllPrimaryCredentialVerifier(PrimaryCredentialVerifier):
    """
    RejectAllPrimaryCredentialVerifier — dev adapter used when no primary provider is configured.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - apps/api/wiring/modules/identity.py
    """

    def verify(self, *, email: str, password: str) -> PrimaryCredentialSession | None:
        log.warning("identity primary auth not configured, rejecting login")
        return None

    def revoke(self, *, session: PrimaryCredentialSession) -> None:
        return None
