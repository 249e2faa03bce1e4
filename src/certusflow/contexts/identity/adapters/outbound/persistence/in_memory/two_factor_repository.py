from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Sequence

from certusflow.contexts.identity.application.ports.two_factor_repository import (
    TwoFactorRepository,
)
from certusflow.contexts.identity.domain.entities import TwoFactorAuth
from certusflow.shared_kernel.primitives import UserId


class InMemoryIdentityTwoFactorRepository(TwoFactorRepository):
    """
    InMemoryIdentityTwoFactorRepository — deterministic in-memory 2FA state storage.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_repository.py
      - src/certusflow/contexts/identity/adapters/outbound/persistence/postgres/
        two_factor_repository.py
      - tests/unit/contexts/identity/application/test_two_factor_totp_use_cases.py
    """

    def __init__(self) -> None:
        """
        Initialize empty in-memory 2FA storage.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Repository instance is process-local; one lock serializes all conditional writes.
        Raises:
            None.
        Side Effects:
            None.
        """
        self._rows: dict[str, TwoFactorAuth] = {}
        self._lock = threading.Lock()

    def find_by_user_id(self, *, user_id: UserId) -> TwoFactorAuth | None:
        with self._lock:
            return self._rows.get(str(user_id))

    def upsert_pending_secret(
        self,
        *,
        user_id: UserId,
        totp_secret_enc: bytes,
        updated_at: datetime,
    ) -> TwoFactorAuth:
        with self._lock:
            existing = self._rows.get(str(user_id))
            if existing is not None and existing.enabled:
                return existing
            row = TwoFactorAuth(
                user_id=user_id,
                totp_secret_enc=bytes(totp_secret_enc),
                enabled=False,
                verified_at=None,
                backup_code_hashes=(),
                updated_at=updated_at,
            )
            self._rows[str(user_id)] = row
            return row

    def enable(
        self,
        *,
        user_id: UserId,
        expected_secret_enc: bytes,
        backup_code_hashes: Sequence[str],
        verified_at: datetime,
    ) -> TwoFactorAuth | None:
        """
        Flip pending row to enabled when it still holds the expected secret blob.

        Args:
            user_id: Identity user identifier.
            expected_secret_enc: Encrypted blob the submitted code was verified against.
            backup_code_hashes: Hashes of freshly issued backup codes.
            verified_at: UTC timestamp of the transition.
        Returns:
            TwoFactorAuth | None: Enabled state or `None` when guard does not match.
        Assumptions:
            Mirrors the conditional UPDATE of the Postgres adapter.
        Raises:
            ValueError: If resulting state violates domain invariants.
        Side Effects:
            Mutates in-memory dictionary row for the user.
        """
        with self._lock:
            existing = self._rows.get(str(user_id))
            if existing is None or existing.enabled:
                return None
            if existing.totp_secret_enc != bytes(expected_secret_enc):
                return None
            enabled_row = replace(
                existing,
                enabled=True,
                verified_at=verified_at,
                backup_code_hashes=tuple(backup_code_hashes),
                updated_at=verified_at,
            )
            self._rows[str(user_id)] = enabled_row
            return enabled_row

    def delete_enabled(self, *, user_id: UserId) -> bool:
        with self._lock:
            existing = self._rows.get(str(user_id))
            if existing is None or not existing.enabled:
                return False
            del self._rows[str(user_id)]
            return True

    def consume_backup_code(
        self,
        *,
        user_id: UserId,
        code_hash: str,
        updated_at: datetime,
    ) -> bool:
        with self._lock:
            existing = self._rows.get(str(user_id))
            if existing is None or not existing.enabled:
                return False
            if code_hash not in existing.backup_code_hashes:
                return False
            self._rows[str(user_id)] = replace(
                existing,
                backup_code_hashes=tuple(
                    item for item in existing.backup_code_hashes if item != code_hash
                ),
                updated_at=updated_at,
            )
            return True
