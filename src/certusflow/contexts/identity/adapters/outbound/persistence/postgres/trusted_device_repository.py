from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping
from uuid import UUID

from certusflow.contexts.identity.adapters.outbound.persistence.postgres.gateway import (
    IdentityPostgresGateway,
)
from certusflow.contexts.identity.application.ports.trusted_device_repository import (
    TrustedDeviceRepository,
)
from certusflow.contexts.identity.domain.entities import TrustedDevice
from certusflow.shared_kernel.primitives import UserId

_COLUMNS = """
            device_id,
            user_id,
            device_fingerprint,
            token_hash,
            device_name,
            ip_address,
            user_agent,
            created_at,
            expires_at,
            last_used_at
"""


class PostgresIdentityTrustedDeviceRepository(TrustedDeviceRepository):
    """
    PostgresIdentityTrustedDeviceRepository — Postgres adapter for trusted device storage port.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/trusted_device_repository.py
      - src/certusflow/contexts/identity/application/services/trusted_device_ledger.py
      - alembic/versions/20261019_0001_identity_2fa_device_trust_v1.py
    """

    def __init__(
        self,
        *,
        gateway: IdentityPostgresGateway,
        devices_table: str = "user_trusted_devices",
    ) -> None:
        """
        Initialize repository with SQL gateway and trusted devices table name.

        Args:
            gateway: SQL gateway abstraction.
            devices_table: Target table name.
        Returns:
            None.
        Assumptions:
            Table has unique `(user_id, device_fingerprint)` constraint.
        Raises:
            ValueError: If dependencies are invalid.
        Side Effects:
            None.
        """
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresIdentityTrustedDeviceRepository requires gateway")
        normalized_table = devices_table.strip()
        if not normalized_table:
            raise ValueError(
                "PostgresIdentityTrustedDeviceRepository requires non-empty table name"
            )
        self._gateway = gateway
        self._table = normalized_table

    def upsert(self, *, device: TrustedDevice) -> TrustedDevice:
        """
        Insert device or refresh token/expiry of the existing user+fingerprint row.

        Args:
            device: Device snapshot with fresh token hash.
        Returns:
            TrustedDevice: Stored row; keeps original `device_id` and `created_at` on conflict.
        Assumptions:
            Re-trusting the same browser invalidates its previous token.
        Raises:
            ValueError: If upsert returns no row or mapping fails.
        Side Effects:
            Executes one SQL upsert statement.
        """
        query = f"""
        INSERT INTO {self._table}
        ({_COLUMNS})
        VALUES
        (
            %(device_id)s,
            %(user_id)s,
            %(device_fingerprint)s,
            %(token_hash)s,
            %(device_name)s,
            %(ip_address)s,
            %(user_agent)s,
            %(created_at)s,
            %(expires_at)s,
            %(last_used_at)s
        )
        ON CONFLICT (user_id, device_fingerprint)
        DO UPDATE
        SET
            token_hash = EXCLUDED.token_hash,
            device_name = EXCLUDED.device_name,
            ip_address = EXCLUDED.ip_address,
            user_agent = EXCLUDED.user_agent,
            expires_at = EXCLUDED.expires_at,
            last_used_at = EXCLUDED.last_used_at
        RETURNING {_COLUMNS}
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={
                "device_id": str(device.device_id),
                "user_id": str(device.user_id),
                "device_fingerprint": device.device_fingerprint,
                "token_hash": device.token_hash,
                "device_name": device.device_name,
                "ip_address": device.ip_address,
                "user_agent": device.user_agent,
                "created_at": device.created_at,
                "expires_at": device.expires_at,
                "last_used_at": device.last_used_at,
            },
        )
        if row is None:
            raise ValueError("PostgresIdentityTrustedDeviceRepository upsert returned no row")
        return _map_trusted_device_row(row=row)

    def find_by_fingerprint(
        self,
        *,
        user_id: UserId,
        device_fingerprint: str,
    ) -> TrustedDevice | None:
        query = f"""
        SELECT {_COLUMNS}
        FROM {self._table}
        WHERE user_id = %(user_id)s
          AND device_fingerprint = %(device_fingerprint)s
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={"user_id": str(user_id), "device_fingerprint": device_fingerprint},
        )
        if row is None:
            return None
        return _map_trusted_device_row(row=row)

    def touch(self, *, device_id: UUID, last_used_at: datetime) -> TrustedDevice | None:
        query = f"""
        UPDATE {self._table}
        SET last_used_at = %(last_used_at)s
        WHERE device_id = %(device_id)s
        RETURNING {_COLUMNS}
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={"device_id": str(device_id), "last_used_at": last_used_at},
        )
        if row is None:
            return None
        return _map_trusted_device_row(row=row)

    def delete(self, *, user_id: UserId, device_id: UUID) -> bool:
        query = f"""
        DELETE FROM {self._table}
        WHERE user_id = %(user_id)s
          AND device_id = %(device_id)s
        RETURNING device_id
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={"user_id": str(user_id), "device_id": str(device_id)},
        )
        return row is not None

    def delete_all_except(self, *, user_id: UserId, keep_fingerprint: str | None) -> int:
        """
        Delete every device of user except the one with `keep_fingerprint`.

        Args:
            user_id: Device owner.
            keep_fingerprint: Fingerprint to keep; `None` deletes all devices of user.
        Returns:
            int: Number of deleted rows.
        Assumptions:
            `IS DISTINCT FROM` keeps NULL comparison semantics explicit.
        Raises:
            psycopg.Error: When database operation fails.
        Side Effects:
            Executes one SQL DELETE statement.
        """
        query = f"""
        DELETE FROM {self._table}
        WHERE user_id = %(user_id)s
          AND device_fingerprint IS DISTINCT FROM %(keep_fingerprint)s
        RETURNING device_id
        """
        rows = self._gateway.fetch_all(
            query=query,
            parameters={"user_id": str(user_id), "keep_fingerprint": keep_fingerprint},
        )
        return len(rows)

    def list_for_user(self, *, user_id: UserId) -> tuple[TrustedDevice, ...]:
        query = f"""
        SELECT {_COLUMNS}
        FROM {self._table}
        WHERE user_id = %(user_id)s
        ORDER BY last_used_at DESC, device_id ASC
        """
        rows = self._gateway.fetch_all(query=query, parameters={"user_id": str(user_id)})
        return tuple(_map_trusted_device_row(row=row) for row in rows)

    def delete_expired(self, *, now: datetime, user_id: UserId | None = None) -> int:
        """
        Delete devices whose expiry is at or before `now`.

        Args:
            now: Current UTC timestamp.
            user_id: Optional owner scope; `None` prunes every user.
        Returns:
            int: Number of deleted rows.
        Assumptions:
            Expiry boundary is inclusive, matching `TrustedDevice.is_expired`.
        Raises:
            psycopg.Error: When database operation fails.
        Side Effects:
            Executes one SQL DELETE statement.
        """
        if user_id is None:
            query = f"""
            DELETE FROM {self._table}
            WHERE expires_at <= %(now)s
            RETURNING device_id
            """
            parameters: dict[str, Any] = {"now": now}
        else:
            query = f"""
            DELETE FROM {self._table}
            WHERE user_id = %(user_id)s
              AND expires_at <= %(now)s
            RETURNING device_id
            """
            parameters = {"now": now, "user_id": str(user_id)}
        rows = self._gateway.fetch_all(query=query, parameters=parameters)
        return len(rows)


def _map_trusted_device_row(*, row: Mapping[str, Any]) -> TrustedDevice:
    """
    Map SQL row mapping into immutable domain `TrustedDevice` entity.

    Args:
        row: SQL result mapping.
    Returns:
        TrustedDevice: Domain trusted device entity.
    Assumptions:
        `ip_address` may come back as `ipaddress` object from INET column.
    Raises:
        ValueError: If required fields are missing or malformed.
    Side Effects:
        None.
    """
    try:
        device_id_raw = row["device_id"]
        ip_address_raw = row["ip_address"]
        return TrustedDevice(
            device_id=device_id_raw if isinstance(device_id_raw, UUID) else UUID(device_id_raw),
            user_id=UserId.from_string(str(row["user_id"])),
            device_fingerprint=str(row["device_fingerprint"]),
            token_hash=str(row["token_hash"]),
            device_name=str(row["device_name"]),
            ip_address=None if ip_address_raw is None else str(ip_address_raw),
            user_agent=row["user_agent"],
            created_at=row["created_at"],
            expires_at=row["expires_at"],
            last_used_at=row["last_used_at"],
        )
    except (KeyError, TypeError, ValueError) as error:
        raise ValueError(
            "PostgresIdentityTrustedDeviceRepository cannot map trusted device row"
        ) from error
