from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Sequence

from certusflow.contexts.identity.adapters.outbound.persistence.postgres.gateway import (
    IdentityPostgresGateway,
)
from certusflow.contexts.identity.application.ports.two_factor_repository import (
    TwoFactorRepository,
)
from certusflow.contexts.identity.domain.entities import TwoFactorAuth
from certusflow.shared_kernel.primitives import UserId

_COLUMNS = """
            user_id,
            totp_secret_enc,
            enabled,
            verified_at,
            backup_codes,
            updated_at
"""


class PostgresIdentityTwoFactorRepository(TwoFactorRepository):
    """
    PostgresIdentityTwoFactorRepository — Postgres adapter for identity 2FA storage port.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_repository.py
      - alembic/versions/20261019_0001_identity_2fa_device_trust_v1.py
      - src/certusflow/contexts/identity/adapters/outbound/persistence/postgres/gateway.py
    """

    def __init__(
        self,
        *,
        gateway: IdentityPostgresGateway,
        two_factor_table: str = "user_2fa",
    ) -> None:
        """
        Initialize repository with SQL gateway and target 2FA table name.

        Args:
            gateway: SQL gateway abstraction.
            two_factor_table: Target 2FA table name.
        Returns:
            None.
        Assumptions:
            Table schema follows revision `20261019_0001`.
        Raises:
            ValueError: If dependencies are invalid.
        Side Effects:
            None.
        """
        if gateway is None:  # type: ignore[truthy-bool]
            raise ValueError("PostgresIdentityTwoFactorRepository requires gateway")
        normalized_table = two_factor_table.strip()
        if not normalized_table:
            raise ValueError("PostgresIdentityTwoFactorRepository requires non-empty table name")

        self._gateway = gateway
        self._table = normalized_table

    def find_by_user_id(self, *, user_id: UserId) -> TwoFactorAuth | None:
        query = f"""
        SELECT {_COLUMNS}
        FROM {self._table}
        WHERE user_id = %(user_id)s
        """
        row = self._gateway.fetch_one(query=query, parameters={"user_id": str(user_id)})
        if row is None:
            return None
        return _map_two_factor_row(row=row)

    def upsert_pending_secret(
        self,
        *,
        user_id: UserId,
        totp_secret_enc: bytes,
        updated_at: datetime,
    ) -> TwoFactorAuth:
        """
        Store pending encrypted secret, skipping overwrite when state is already enabled.

        Args:
            user_id: Identity user identifier.
            totp_secret_enc: Encrypted opaque TOTP secret blob.
            updated_at: UTC update timestamp.
        Returns:
            TwoFactorAuth: Persisted row, or the concurrent enabled row left untouched.
        Assumptions:
            Re-setup of a pending row clears verification data and backup codes.
        Raises:
            ValueError: If repository cannot return resulting row mapping.
        Side Effects:
            Executes one SQL upsert statement and optional fallback select.
        """
        query = f"""
        INSERT INTO {self._table}
        (
            user_id,
            totp_secret_enc,
            enabled,
            verified_at,
            backup_codes,
            updated_at
        )
        VALUES
        (
            %(user_id)s,
            %(totp_secret_enc)s,
            FALSE,
            NULL,
            '{{}}',
            %(updated_at)s
        )
        ON CONFLICT (user_id)
        DO UPDATE
        SET
            totp_secret_enc = EXCLUDED.totp_secret_enc,
            verified_at = NULL,
            backup_codes = '{{}}',
            updated_at = EXCLUDED.updated_at
        WHERE NOT {self._table}.enabled
        RETURNING {_COLUMNS}
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={
                "user_id": str(user_id),
                "totp_secret_enc": bytes(totp_secret_enc),
                "updated_at": updated_at,
            },
        )
        if row is None:
            existing = self.find_by_user_id(user_id=user_id)
            if existing is None:
                raise ValueError("PostgresIdentityTwoFactorRepository upsert returned no row")
            return existing
        return _map_two_factor_row(row=row)

    def enable(
        self,
        *,
        user_id: UserId,
        expected_secret_enc: bytes,
        backup_code_hashes: Sequence[str],
        verified_at: datetime,
    ) -> TwoFactorAuth | None:
        """
        Flip pending row to enabled only when it still holds the verified secret blob.

        Args:
            user_id: Identity user identifier.
            expected_secret_enc: Encrypted blob the submitted code was verified against.
            backup_code_hashes: Hashes of freshly issued backup codes.
            verified_at: UTC timestamp of the transition.
        Returns:
            TwoFactorAuth | None: Enabled state, or `None` when the guard did not match.
        Assumptions:
            Guard on `enabled = FALSE` makes concurrent verifies enable exactly once.
        Raises:
            ValueError: If row mapping is malformed.
        Side Effects:
            Executes one SQL UPDATE statement.
        """
        query = f"""
        UPDATE {self._table}
        SET
            enabled = TRUE,
            verified_at = %(verified_at)s,
            backup_codes = %(backup_codes)s,
            updated_at = %(verified_at)s
        WHERE user_id = %(user_id)s
          AND enabled = FALSE
          AND totp_secret_enc = %(expected_secret_enc)s
        RETURNING {_COLUMNS}
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={
                "user_id": str(user_id),
                "expected_secret_enc": bytes(expected_secret_enc),
                "backup_codes": list(backup_code_hashes),
                "verified_at": verified_at,
            },
        )
        if row is None:
            return None
        return _map_two_factor_row(row=row)

    def delete_enabled(self, *, user_id: UserId) -> bool:
        query = f"""
        DELETE FROM {self._table}
        WHERE user_id = %(user_id)s
          AND enabled = TRUE
        RETURNING user_id
        """
        row = self._gateway.fetch_one(query=query, parameters={"user_id": str(user_id)})
        return row is not None

    def consume_backup_code(
        self,
        *,
        user_id: UserId,
        code_hash: str,
        updated_at: datetime,
    ) -> bool:
        """
        Remove one backup code hash in a single conditional UPDATE.

        Args:
            user_id: Identity user identifier.
            code_hash: Stored hash that matched the submitted code.
            updated_at: UTC timestamp of this write operation.
        Returns:
            bool: `True` only when this statement removed the hash.
        Assumptions:
            Row lock taken by UPDATE serializes concurrent consumers; the loser re-checks
            `ANY(backup_codes)` and matches zero rows.
        Raises:
            psycopg.Error: When database operation fails.
        Side Effects:
            Executes one SQL UPDATE statement.
        """
        query = f"""
        UPDATE {self._table}
        SET
            backup_codes = array_remove(backup_codes, %(code_hash)s),
            updated_at = %(updated_at)s
        WHERE user_id = %(user_id)s
          AND enabled = TRUE
          AND %(code_hash)s = ANY(backup_codes)
        RETURNING user_id
        """
        row = self._gateway.fetch_one(
            query=query,
            parameters={
                "user_id": str(user_id),
                "code_hash": code_hash,
                "updated_at": updated_at,
            },
        )
        return row is not None


def _map_two_factor_row(*, row: Mapping[str, Any]) -> TwoFactorAuth:
    """
    Map SQL row mapping into immutable domain `TwoFactorAuth` entity.

    Args:
        row: SQL result mapping.
    Returns:
        TwoFactorAuth: Domain 2FA state entity.
    Assumptions:
        Row follows schema from `user_2fa` table; `backup_codes` may be NULL.
    Raises:
        ValueError: If required fields are missing or malformed.
    Side Effects:
        None.
    """
    try:
        secret_raw = row["totp_secret_enc"]
        if isinstance(secret_raw, memoryview):
            secret_enc = secret_raw.tobytes()
        else:
            secret_enc = bytes(secret_raw)
        return TwoFactorAuth(
            user_id=UserId.from_string(str(row["user_id"])),
            totp_secret_enc=secret_enc,
            enabled=bool(row["enabled"]),
            verified_at=row["verified_at"],
            backup_code_hashes=tuple(str(item) for item in row["backup_codes"] or ()),
            updated_at=row["updated_at"],
        )
    except (KeyError, TypeError, ValueError) as error:
        raise ValueError("PostgresIdentityTwoFactorRepository cannot map 2FA row") from error
