from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, cast

import psycopg
from psycopg.rows import dict_row


class IdentityPostgresGateway(Protocol):
    """
    IdentityPostgresGateway — минимальный SQL gateway для identity Postgres adapters.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/outbound/persistence/postgres/
        two_factor_repository.py
      - alembic/versions/20261019_0001_identity_2fa_device_trust_v1.py
      - apps/api/wiring/modules/identity.py
    """

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """
        Execute SQL query and return one row as mapping.

        Args:
            query: SQL text.
            parameters: Bind parameters mapping.
        Returns:
            Mapping[str, Any] | None: One row or `None`.
        Assumptions:
            Query may include `RETURNING` clause.
        Raises:
            Exception: Storage/driver exceptions from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> Sequence[Mapping[str, Any]]:
        """
        Execute SQL query and return every row as mapping.

        Args:
            query: SQL text.
            parameters: Bind parameters mapping.
        Returns:
            Sequence[Mapping[str, Any]]: Result rows in query order.
        Assumptions:
            Query may be a `DELETE ... RETURNING` statement.
        Raises:
            Exception: Storage/driver exceptions from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        """
        Execute SQL query without row return value.

        Args:
            query: SQL text.
            parameters: Bind parameters mapping.
        Returns:
            None.
        Assumptions:
            Query is side-effecting write statement.
        Raises:
            Exception: Storage/driver exceptions from implementation.
        Side Effects:
            Executes one SQL statement.
        """
        ...


class PsycopgIdentityPostgresGateway(IdentityPostgresGateway):
    """
    PsycopgIdentityPostgresGateway — psycopg3 implementation of identity SQL gateway.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/outbound/persistence/postgres/gateway.py
      - src/certusflow/contexts/identity/adapters/outbound/persistence/postgres/
        trusted_device_repository.py
    """

    def __init__(self, *, dsn: str) -> None:
        """
        Initialize gateway with DSN connection string.

        Args:
            dsn: PostgreSQL DSN.
        Returns:
            None.
        Assumptions:
            DSN points to database with identity 2FA schema migrated.
        Raises:
            ValueError: If DSN is blank.
        Side Effects:
            None.
        """
        normalized_dsn = dsn.strip()
        if not normalized_dsn:
            raise ValueError("PsycopgIdentityPostgresGateway requires non-empty dsn")
        self._dsn = normalized_dsn

    def fetch_one(self, *, query: str, parameters: Mapping[str, Any]) -> Mapping[str, Any] | None:
        """
        Execute query and return first row mapped by column names.

        Args:
            query: SQL text.
            parameters: Bind parameters mapping.
        Returns:
            Mapping[str, Any] | None: Query row or `None`.
        Assumptions:
            psycopg connection context commits on clean exit and rolls back on error.
        Raises:
            psycopg.Error: When database operation fails.
        Side Effects:
            Opens one database connection and executes one query.
        """
        with psycopg.connect(self._dsn, row_factory=cast(Any, dict_row)) as connection:
            with connection.cursor() as cursor:
                cursor.execute(cast(Any, query), parameters)
                row = cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    def fetch_all(
        self,
        *,
        query: str,
        parameters: Mapping[str, Any],
    ) -> Sequence[Mapping[str, Any]]:
        with psycopg.connect(self._dsn, row_factory=cast(Any, dict_row)) as connection:
            with connection.cursor() as cursor:
                cursor.execute(cast(Any, query), parameters)
                rows = cursor.fetchall()
        return [dict(row) for row in rows]

    def execute(self, *, query: str, parameters: Mapping[str, Any]) -> None:
        with psycopg.connect(self._dsn, row_factory=cast(Any, dict_row)) as connection:
            with connection.cursor() as cursor:
                cursor.execute(cast(Any, query), parameters)
