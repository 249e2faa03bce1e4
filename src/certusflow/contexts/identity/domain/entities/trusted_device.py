from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from certusflow.shared_kernel.primitives import UserId

_SHA256_HEX_PATTERN = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True, slots=True)
class TrustedDevice:
    """
    TrustedDevice — доверенное устройство, которому разрешен вход без второго фактора до истечения.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/services/trusted_device_ledger.py
      - src/certusflow/contexts/identity/application/ports/trusted_device_repository.py
      - alembic/versions/20261019_0001_identity_2fa_device_trust_v1.py
    """

    device_id: UUID
    user_id: UserId
    device_fingerprint: str
    token_hash: str
    device_name: str
    ip_address: str | None
    user_agent: str | None
    created_at: datetime
    expires_at: datetime
    last_used_at: datetime

    def __post_init__(self) -> None:
        """
        Validate fingerprint/token hash shapes and timestamp ordering.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Fingerprint and token hash are lowercase sha256 hex digests.
        Raises:
            ValueError: If hashes are malformed, name is blank, or timestamps are invalid.
        Side Effects:
            None.
        """
        if not _SHA256_HEX_PATTERN.match(self.device_fingerprint):
            raise ValueError("TrustedDevice.device_fingerprint must be sha256 hex digest")
        if not _SHA256_HEX_PATTERN.match(self.token_hash):
            raise ValueError("TrustedDevice.token_hash must be sha256 hex digest")
        if not self.device_name.strip():
            raise ValueError("TrustedDevice.device_name must be non-empty")
        for name, value in (
            ("created_at", self.created_at),
            ("expires_at", self.expires_at),
            ("last_used_at", self.last_used_at),
        ):
            offset = value.utcoffset()
            if value.tzinfo is None or offset is None or offset.total_seconds() != 0:
                raise ValueError(f"TrustedDevice.{name} must be timezone-aware UTC datetime")
        if self.expires_at <= self.created_at:
            raise ValueError("TrustedDevice.expires_at must be after created_at")

    def is_expired(self, *, now: datetime) -> bool:
        """
        Check validity window against current time.

        Args:
            now: Current UTC datetime.
        Returns:
            bool: `True` once `now` reaches `expires_at`.
        Assumptions:
            Device is valid only while `now < expires_at`.
        Raises:
            None.
        Side Effects:
            None.
        """
        return now >= self.expires_at
