from __future__ import annotations

from certusflow.contexts.identity.adapters.outbound.persistence.postgres.gateway import (
    IdentityPostgresGateway,
)
from certusflow.contexts.identity.application.ports.two_factor_audit_log import TwoFactorAuditLog
from certusflow.contexts.identity.domain.entities import TwoFactorAuditEvent


class PostgresIdentityTwoFactorAuditLog(TwoFactorAuditLog):
    """
    PostgresIdentityTwoFactorAuditLog — append-only Postgres sink for 2FA audit events.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_audit_log.py
      - src/certusflow/contexts/identity/application/services/two_factor_audit_recorder.py
      - alembic/versions/20261019_0001_identity_2fa_device_trust_v1.py
    """

    def __init__(
        self,
        *,
        gateway: IdentityPostgresGateway,
        audit_table: str = "user_2fa_audit",
    ) -> None:
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresIdentityTwoFactorAuditLog requires gateway")
        normalized_table = audit_table.strip()
        if not normalized_table:
            raise ValueError("PostgresIdentityTwoFactorAuditLog requires non-empty table name")
        self._gateway = gateway
        self._table = normalized_table

    def append(self, *, event: TwoFactorAuditEvent) -> None:
        """
        Insert one audit event row.

        Args:
            event: Audit event entity.
        Returns:
            None.
        Assumptions:
            Rows are never updated or deleted by the application.
        Raises:
            psycopg.Error: When database operation fails.
        Side Effects:
            Executes one SQL INSERT statement.
        """
        query = f"""
        INSERT INTO {self._table}
        (
            event_id,
            user_id,
            event_type,
            success,
            failure_kind,
            ip_address,
            user_agent,
            created_at
        )
        VALUES
        (
            %(event_id)s,
            %(user_id)s,
            %(event_type)s,
            %(success)s,
            %(failure_kind)s,
            %(ip_address)s,
            %(user_agent)s,
            %(created_at)s
        )
        """
        self._gateway.execute(
            query=query,
            parameters={
                "event_id": str(event.event_id),
                "user_id": str(event.user_id),
                "event_type": event.event_type.value,
                "success": event.success,
                "failure_kind": event.failure_kind,
                "ip_address": event.ip_address,
                "user_agent": event.user_agent,
                "created_at": event.created_at,
            },
        )
