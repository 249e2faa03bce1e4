from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from certusflow.contexts.identity.application.services.trusted_device_ledger import (
    TrustedDeviceLedger,
)
from certusflow.contexts.identity.domain.entities import TrustedDevice
from certusflow.shared_kernel.primitives import UserId


@dataclass(frozen=True, slots=True)
class TrustedDeviceView:
    """
    TrustedDeviceView — trusted device row plus marker of the requesting client.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/trusted_devices.py
    """

    device: TrustedDevice
    is_current: bool


class ManageTrustedDevicesUseCase:
    """
    ManageTrustedDevicesUseCase — self-service list and revocation of trusted devices.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/services/trusted_device_ledger.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/trusted_devices.py
    """

    def __init__(self, *, ledger: TrustedDeviceLedger) -> None:
        if ledger is None:  # type: ignore[truthy-bool]
            raise ValueError("ManageTrustedDevicesUseCase requires ledger")
        self._ledger = ledger

    def list_devices(
        self,
        *,
        user_id: UserId,
        client_identity: str | None,
    ) -> tuple[TrustedDeviceView, ...]:
        """
        List live trusted devices of user and flag the one matching this client.

        Args:
            user_id: Authenticated identity user id.
            client_identity: Live client identifying string.
        Returns:
            tuple[TrustedDeviceView, ...]: Devices ordered by last use.
        Assumptions:
            Expired rows are pruned by the ledger before listing.
        Raises:
            ValueError: If repository row mapping is malformed.
        Side Effects:
            Deletes expired rows of this user.
        """
        current = self._ledger.fingerprint(user_id=user_id, client_identity=client_identity)
        return tuple(
            TrustedDeviceView(device=device, is_current=device.device_fingerprint == current)
            for device in self._ledger.list_devices(user_id=user_id)
        )

    def revoke_device(self, *, user_id: UserId, device_id: UUID) -> bool:
        return self._ledger.revoke_one(user_id=user_id, device_id=device_id)

    def revoke_other_devices(self, *, user_id: UserId, client_identity: str | None) -> int:
        """
        Revoke every trusted device of user except the requesting client.

        Args:
            user_id: Authenticated identity user id.
            client_identity: Live client identifying string.
        Returns:
            int: Number of revoked devices.
        Assumptions:
            Revocation is immediately effective.
        Raises:
            None.
        Side Effects:
            Deletes trusted device rows.
        """
        return self._ledger.revoke_all_except_current(
            user_id=user_id,
            current_fingerprint=self._ledger.fingerprint(
                user_id=user_id,
                client_identity=client_identity,
            ),
        )
