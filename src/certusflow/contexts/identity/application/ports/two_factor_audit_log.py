from __future__ import annotations

from typing import Protocol

from certusflow.contexts.identity.domain.entities import TwoFactorAuditEvent


class TwoFactorAuditLog(Protocol):
    """
    TwoFactorAuditLog — append-only порт журнала аудита 2FA.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/services/two_factor_audit_recorder.py
      - src/certusflow/contexts/identity/adapters/outbound/persistence/postgres/
        two_factor_audit_log.py
    """

    def append(self, *, event: TwoFactorAuditEvent) -> None:
        """
        Append one audit event.

        Args:
            event: Immutable audit event.
        Returns:
            None.
        Assumptions:
            Events are never updated or deleted.
        Raises:
            Exception: Storage/driver exceptions from implementation.
        Side Effects:
            Writes one storage record.
        """
        ...
