from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from certusflow.contexts.identity.domain.entities import TrustedDevice
from certusflow.shared_kernel.primitives import UserId


class TrustedDeviceRepository(Protocol):
    """
    TrustedDeviceRepository — порт хранения доверенных устройств по `(user_id, fingerprint)`.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/services/trusted_device_ledger.py
      - src/certusflow/contexts/identity/adapters/outbound/persistence/postgres/
        trusted_device_repository.py
      - alembic/versions/20261019_0001_identity_2fa_device_trust_v1.py
    """

    def upsert(self, *, device: TrustedDevice) -> TrustedDevice:
        """
        Insert device or refresh token/expiry of existing `(user_id, fingerprint)` row.

        Args:
            device: Device snapshot to persist.
        Returns:
            TrustedDevice: Persisted row (keeps original `device_id` on conflict).
        Assumptions:
            At most one row exists per `(user_id, device_fingerprint)`.
        Raises:
            ValueError: If resulting row cannot be mapped.
        Side Effects:
            Writes one storage record.
        """
        ...

    def find_by_fingerprint(
        self,
        *,
        user_id: UserId,
        device_fingerprint: str,
    ) -> TrustedDevice | None:
        """
        Find device row by owner and fingerprint.

        Args:
            user_id: Owner identifier.
            device_fingerprint: Deterministic client fingerprint.
        Returns:
            TrustedDevice | None: Stored row or `None`.
        Assumptions:
            Expiry is evaluated by caller.
        Raises:
            ValueError: If row mapping is malformed.
        Side Effects:
            Reads one storage record.
        """
        ...

    def touch(self, *, device_id: UUID, last_used_at: datetime) -> TrustedDevice | None:
        """
        Refresh `last_used_at` of one device.

        Args:
            device_id: Device identifier.
            last_used_at: UTC timestamp of bypass.
        Returns:
            TrustedDevice | None: Updated row or `None` when already revoked.
        Assumptions:
            Revoked devices are not resurrected.
        Raises:
            ValueError: If row mapping is malformed.
        Side Effects:
            Writes one storage record.
        """
        ...

    def delete(self, *, user_id: UserId, device_id: UUID) -> bool:
        """
        Delete one device owned by user.

        Args:
            user_id: Owner identifier.
            device_id: Device identifier.
        Returns:
            bool: `True` when a row was deleted.
        Assumptions:
            Devices of other users are never affected.
        Raises:
            None.
        Side Effects:
            Deletes at most one storage record.
        """
        ...

    def delete_all_except(self, *, user_id: UserId, keep_fingerprint: str | None) -> int:
        """
        Delete all devices of user except the one with given fingerprint.

        Args:
            user_id: Owner identifier.
            keep_fingerprint: Fingerprint to keep, or `None` to delete all.
        Returns:
            int: Number of deleted rows.
        Assumptions:
            Operation is one storage statement.
        Raises:
            None.
        Side Effects:
            Deletes storage records.
        """
        ...

    def list_for_user(self, *, user_id: UserId) -> tuple[TrustedDevice, ...]:
        """
        List devices owned by user ordered by `last_used_at` descending.

        Args:
            user_id: Owner identifier.
        Returns:
            tuple[TrustedDevice, ...]: Stored rows.
        Assumptions:
            Caller removes expired rows first.
        Raises:
            ValueError: If row mapping is malformed.
        Side Effects:
            Reads storage records.
        """
        ...

    def delete_expired(self, *, now: datetime, user_id: UserId | None = None) -> int:
        """
        Delete rows with `expires_at <= now`, optionally scoped to one user.

        Args:
            now: Current UTC timestamp.
            user_id: Optional owner scope.
        Returns:
            int: Number of deleted rows.
        Assumptions:
            Expired rows are never valid again.
        Raises:
            None.
        Side Effects:
            Deletes storage records.
        """
        ...
