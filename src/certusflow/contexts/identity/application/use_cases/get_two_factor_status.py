from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from certusflow.contexts.identity.application.ports.two_factor_repository import (
    TwoFactorRepository,
)
from certusflow.shared_kernel.primitives import UserId


@dataclass(frozen=True, slots=True)
class TwoFactorStatus:
    """
    TwoFactorStatus — output model for identity `/2fa/status` query.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
    """

    enabled: bool
    verified_at: datetime | None
    backup_codes_remaining: int


class GetTwoFactorStatusUseCase:
    """
    GetTwoFactorStatusUseCase — read-only 2FA status for the authenticated user.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_repository.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_totp.py
    """

    def __init__(self, *, repository: TwoFactorRepository) -> None:
        if repository is None:  # type: ignore[truthy-bool]
            raise ValueError("GetTwoFactorStatusUseCase requires repository")
        self._repository = repository

    def status(self, *, user_id: UserId) -> TwoFactorStatus:
        """
        Return enabled flag, verification timestamp and remaining backup codes.

        Args:
            user_id: Authenticated identity user id.
        Returns:
            TwoFactorStatus: Status snapshot; pending setup reports `enabled=false`.
        Assumptions:
            Pending records expose no verification timestamp.
        Raises:
            ValueError: If repository row mapping is malformed.
        Side Effects:
            Reads one storage record.
        """
        existing = self._repository.find_by_user_id(user_id=user_id)
        if existing is None or not existing.enabled:
            return TwoFactorStatus(enabled=False, verified_at=None, backup_codes_remaining=0)
        return TwoFactorStatus(
            enabled=True,
            verified_at=existing.verified_at,
            backup_codes_remaining=existing.backup_codes_remaining,
        )
