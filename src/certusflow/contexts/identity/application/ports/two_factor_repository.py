from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from certusflow.contexts.identity.domain.entities import TwoFactorAuth
from certusflow.shared_kernel.primitives import UserId


class TwoFactorRepository(Protocol):
    """
    TwoFactorRepository — порт хранения 2FA состояния (одна запись на пользователя).

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/domain/entities/two_factor_auth.py
      - src/certusflow/contexts/identity/application/use_cases/setup_two_factor_totp.py
      - src/certusflow/contexts/identity/adapters/outbound/persistence/postgres/
        two_factor_repository.py
    """

    def find_by_user_id(self, *, user_id: UserId) -> TwoFactorAuth | None:
        """
        Find 2FA state snapshot by stable user identifier.

        Args:
            user_id: Identity user identifier.
        Returns:
            TwoFactorAuth | None: Stored state snapshot or `None` when setup is absent.
        Assumptions:
            `user_id` uniquely identifies one 2FA row.
        Raises:
            ValueError: If adapter cannot map storage row to domain state.
        Side Effects:
            Reads one storage record.
        """
        ...

    def upsert_pending_secret(
        self,
        *,
        user_id: UserId,
        totp_secret_enc: bytes,
        updated_at: datetime,
    ) -> TwoFactorAuth:
        """
        Create or replace pending TOTP secret while 2FA is not enabled.

        Args:
            user_id: Identity user identifier.
            totp_secret_enc: Encrypted opaque TOTP secret blob.
            updated_at: UTC timestamp of this write operation.
        Returns:
            TwoFactorAuth: Persisted state after upsert, or the untouched enabled row when a
                concurrent verify won the race.
        Assumptions:
            Write is conditional: an enabled row is never overwritten.
        Raises:
            ValueError: If adapter cannot persist or map the resulting state.
        Side Effects:
            Writes one storage record.
        """
        ...

    def enable(
        self,
        *,
        user_id: UserId,
        expected_secret_enc: bytes,
        backup_code_hashes: Sequence[str],
        verified_at: datetime,
    ) -> TwoFactorAuth | None:
        """
        Flip pending setup to enabled and store backup code hashes in one atomic write.

        Args:
            user_id: Identity user identifier.
            expected_secret_enc: Encrypted blob the submitted code was verified against.
            backup_code_hashes: Hashes of freshly issued backup codes.
            verified_at: UTC timestamp of the setup -> enabled transition.
        Returns:
            TwoFactorAuth | None: Enabled state, or `None` when the row is gone, already
                enabled, or was re-setup with another secret in the meantime.
        Assumptions:
            Conditional update checks `enabled = FALSE` and the expected secret blob.
        Raises:
            ValueError: If adapter cannot map resulting row.
        Side Effects:
            Writes one storage record.
        """
        ...

    def delete_enabled(self, *, user_id: UserId) -> bool:
        """
        Delete enabled 2FA record so a later setup starts from a clean secret.

        Args:
            user_id: Identity user identifier.
        Returns:
            bool: `True` when an enabled row was deleted.
        Assumptions:
            Pending rows are not removed by this operation.
        Raises:
            None.
        Side Effects:
            Deletes at most one storage record.
        """
        ...

    def consume_backup_code(
        self,
        *,
        user_id: UserId,
        code_hash: str,
        updated_at: datetime,
    ) -> bool:
        """
        Atomically remove one backup code hash from an enabled record.

        Args:
            user_id: Identity user identifier.
            code_hash: Stored hash that matched the submitted code.
            updated_at: UTC timestamp of this write operation.
        Returns:
            bool: `True` only for the single caller that removed the hash.
        Assumptions:
            Concurrent consumers of the same hash observe exactly one `True`.
        Raises:
            None.
        Side Effects:
            Writes one storage record.
        """
        ...
