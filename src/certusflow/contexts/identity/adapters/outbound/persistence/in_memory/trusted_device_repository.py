from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from uuid import UUID

from certusflow.contexts.identity.application.ports.trusted_device_repository import (
    TrustedDeviceRepository,
)
from certusflow.contexts.identity.domain.entities import TrustedDevice
from certusflow.shared_kernel.primitives import UserId


class InMemoryIdentityTrustedDeviceRepository(TrustedDeviceRepository):
    """
    InMemoryIdentityTrustedDeviceRepository — deterministic in-memory trusted device storage.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/trusted_device_repository.py
      - src/certusflow/contexts/identity/adapters/outbound/persistence/postgres/
        trusted_device_repository.py
      - tests/unit/contexts/identity/application/test_trusted_device_ledger.py
    """

    def __init__(self) -> None:
        self._rows: dict[UUID, TrustedDevice] = {}
        self._lock = threading.Lock()

    def upsert(self, *, device: TrustedDevice) -> TrustedDevice:
        """
        Insert device or refresh the existing row of the same user and fingerprint.

        Args:
            device: Device snapshot with fresh token hash.
        Returns:
            TrustedDevice: Stored row with original `device_id` on conflict.
        Assumptions:
            Mirrors `ON CONFLICT (user_id, device_fingerprint)` of the Postgres adapter.
        Raises:
            ValueError: If resulting row violates domain invariants.
        Side Effects:
            Mutates in-memory dictionary.
        """
        with self._lock:
            existing = self._find(
                user_id=device.user_id,
                device_fingerprint=device.device_fingerprint,
            )
            if existing is None:
                self._rows[device.device_id] = device
                return device
            refreshed = replace(
                existing,
                token_hash=device.token_hash,
                device_name=device.device_name,
                ip_address=device.ip_address,
                user_agent=device.user_agent,
                expires_at=device.expires_at,
                last_used_at=device.last_used_at,
            )
            self._rows[existing.device_id] = refreshed
            return refreshed

    def find_by_fingerprint(
        self,
        *,
        user_id: UserId,
        device_fingerprint: str,
    ) -> TrustedDevice | None:
        with self._lock:
            return self._find(user_id=user_id, device_fingerprint=device_fingerprint)

    def touch(self, *, device_id: UUID, last_used_at: datetime) -> TrustedDevice | None:
        with self._lock:
            existing = self._rows.get(device_id)
            if existing is None:
                return None
            touched = replace(existing, last_used_at=last_used_at)
            self._rows[device_id] = touched
            return touched

    def delete(self, *, user_id: UserId, device_id: UUID) -> bool:
        with self._lock:
            existing = self._rows.get(device_id)
            if existing is None or existing.user_id != user_id:
                return False
            del self._rows[device_id]
            return True

    def delete_all_except(self, *, user_id: UserId, keep_fingerprint: str | None) -> int:
        with self._lock:
            doomed = [
                device.device_id
                for device in self._rows.values()
                if device.user_id == user_id and device.device_fingerprint != keep_fingerprint
            ]
            for device_id in doomed:
                del self._rows[device_id]
            return len(doomed)

    def list_for_user(self, *, user_id: UserId) -> tuple[TrustedDevice, ...]:
        with self._lock:
            devices = [device for device in self._rows.values() if device.user_id == user_id]
        devices.sort(key=lambda device: str(device.device_id))
        devices.sort(key=lambda device: device.last_used_at, reverse=True)
        return tuple(devices)

    def delete_expired(self, *, now: datetime, user_id: UserId | None = None) -> int:
        with self._lock:
            doomed = [
                device.device_id
                for device in self._rows.values()
                if device.is_expired(now=now) and (user_id is None or device.user_id == user_id)
            ]
            for device_id in doomed:
                del self._rows[device_id]
            return len(doomed)

    def _find(self, *, user_id: UserId, device_fingerprint: str) -> TrustedDevice | None:
        for device in self._rows.values():
            if device.user_id == user_id and device.device_fingerprint == device_fingerprint:
                return device
        return None
