from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from certusflow.shared_kernel.primitives import UserId

_BACKUP_CODE_HASH_PATTERN = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True, slots=True)
class TwoFactorAuth:
    """
    TwoFactorAuth — immutable 2FA state snapshot (pending setup or enabled TOTP credential).

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_repository.py
      - alembic/versions/20261019_0001_identity_2fa_device_trust_v1.py
      - src/certusflow/contexts/identity/application/use_cases/verify_two_factor_totp.py
    """

    user_id: UserId
    totp_secret_enc: bytes
    enabled: bool
    verified_at: datetime | None
    backup_code_hashes: tuple[str, ...]
    updated_at: datetime

    def __post_init__(self) -> None:
        """
        Validate 2FA state invariants for enabled flag, backup hashes and UTC timestamps.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            `updated_at` and `verified_at` (when present) are timezone-aware UTC datetimes.
        Raises:
            ValueError: If encrypted secret is empty, timestamps are non-UTC, backup hashes are
                malformed, or enabled invariants are violated.
        Side Effects:
            Normalizes `backup_code_hashes` into a tuple.
        """
        if not self.totp_secret_enc:
            raise ValueError("TwoFactorAuth.totp_secret_enc must be non-empty")
        _ensure_utc_datetime(name="updated_at", value=self.updated_at)
        hashes = tuple(self.backup_code_hashes)
        for code_hash in hashes:
            if not _BACKUP_CODE_HASH_PATTERN.match(code_hash):
                raise ValueError("TwoFactorAuth.backup_code_hashes must contain sha256 hex digests")
        object.__setattr__(self, "backup_code_hashes", hashes)

        if self.enabled:
            if self.verified_at is None:
                raise ValueError("TwoFactorAuth.verified_at must be set when enabled is true")
            _ensure_utc_datetime(name="verified_at", value=self.verified_at)
            if self.updated_at < self.verified_at:
                raise ValueError("TwoFactorAuth.updated_at cannot be before verified_at")
            return
        if self.verified_at is not None:
            raise ValueError("TwoFactorAuth.verified_at must be None when enabled is false")
        if hashes:
            raise ValueError("TwoFactorAuth pending setup cannot hold backup codes")

    @property
    def backup_codes_remaining(self) -> int:
        return len(self.backup_code_hashes)


def _ensure_utc_datetime(*, name: str, value: datetime) -> None:
    """
    Validate timezone awareness and UTC offset for datetime fields.

    Args:
        name: Field name for deterministic error messages.
        value: Datetime value to validate.
    Returns:
        None.
    Assumptions:
        UTC datetimes are represented with timezone info and zero offset.
    Raises:
        ValueError: If datetime is naive or not in UTC.
    Side Effects:
        None.
    """
    offset = value.utcoffset()
    if value.tzinfo is None or offset is None:
        raise ValueError(f"{name} must be timezone-aware UTC datetime")
    if offset.total_seconds() != 0:
        raise ValueError(f"{name} must be UTC datetime")
