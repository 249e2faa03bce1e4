from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from certusflow.contexts.identity.application.ports.clock import IdentityClock
from certusflow.contexts.identity.application.ports.trusted_device_repository import (
    TrustedDeviceRepository,
)
from certusflow.contexts.identity.application.services.device_name import extract_device_name
from certusflow.contexts.identity.domain.entities import TrustedDevice
from certusflow.shared_kernel.primitives import UserId

log = logging.getLogger(__name__)

TRUSTED_DEVICE_TTL_DAYS = 30
_TOKEN_BYTES = 32


@dataclass(frozen=True, slots=True)
class TrustedDeviceMetadata:
    """
    TrustedDeviceMetadata — best-effort client metadata stored with a trusted device.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/services/trusted_device_ledger.py
    """

    ip_address: str | None = None
    user_agent: str | None = None
    device_name: str | None = None


@dataclass(frozen=True, slots=True)
class IssuedTrustedDevice:
    """
    IssuedTrustedDevice — bearer token disclosed once to the client plus stored device row.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/two_factor_login.py
    """

    token: str = field(repr=False)
    expires_at: datetime
    device: TrustedDevice


def compute_device_fingerprint(*, user_id: UserId, client_identity: str | None) -> str:
    """
    Derive deterministic device fingerprint from user identity and client string.

    Args:
        user_id: Device owner.
        client_identity: Client identifying string (User-Agent).
    Returns:
        str: Lowercase sha256 hex digest.
    Assumptions:
        Same browser/user pair always re-derives the same fingerprint.
    Raises:
        None.
    Side Effects:
        None.
    """
    raw = f"{user_id}-{client_identity or ''}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def hash_trusted_device_token(*, token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TrustedDeviceLedger:
    """
    TrustedDeviceLedger — выдача, проверка, истечение и отзыв доверенных устройств.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/trusted_device_repository.py
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
      - src/certusflow/contexts/identity/application/use_cases/manage_trusted_devices.py
    """

    def __init__(
        self,
        *,
        repository: TrustedDeviceRepository,
        clock: IdentityClock,
        ttl_days: int = TRUSTED_DEVICE_TTL_DAYS,
    ) -> None:
        """
        Initialize ledger dependencies and validity window.

        Args:
            repository: Trusted device storage port.
            clock: UTC time source.
            ttl_days: Validity window of issued devices in days.
        Returns:
            None.
        Assumptions:
            Validity window is a policy constant resolved at startup.
        Raises:
            ValueError: If dependencies are missing or TTL is not positive.
        Side Effects:
            None.
        """
        if repository is None:  # type: ignore[truthy-bool]
            raise ValueError("TrustedDeviceLedger requires repository")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("TrustedDeviceLedger requires clock")
        if ttl_days <= 0:
            raise ValueError("TrustedDeviceLedger requires ttl_days > 0")

        self._repository = repository
        self._clock = clock
        self._ttl = timedelta(days=ttl_days)

    def fingerprint(self, *, user_id: UserId, client_identity: str | None) -> str:
        return compute_device_fingerprint(user_id=user_id, client_identity=client_identity)

    def issue(
        self,
        *,
        user_id: UserId,
        device_fingerprint: str,
        metadata: TrustedDeviceMetadata,
    ) -> IssuedTrustedDevice:
        """
        Create or refresh trusted device and return a fresh bearer token.

        Args:
            user_id: Device owner.
            device_fingerprint: Fingerprint computed from live client data.
            metadata: Best-effort client metadata.
        Returns:
            IssuedTrustedDevice: Plain token (disclosed once), expiry and stored row.
        Assumptions:
            Only the token hash is persisted; re-issue replaces the previous token.
        Raises:
            ValueError: If fingerprint is malformed.
        Side Effects:
            Upserts one trusted device row.
        """
        now = self._clock.now()
        token = secrets.token_hex(_TOKEN_BYTES)
        expires_at = now + self._ttl
        device_name = metadata.device_name or extract_device_name(user_agent=metadata.user_agent)
        stored = self._repository.upsert(
            device=TrustedDevice(
                device_id=uuid4(),
                user_id=user_id,
                device_fingerprint=device_fingerprint,
                token_hash=hash_trusted_device_token(token=token),
                device_name=device_name,
                ip_address=metadata.ip_address,
                user_agent=metadata.user_agent,
                created_at=now,
                expires_at=expires_at,
                last_used_at=now,
            )
        )
        log.info(
            "identity trusted device issued user_id=%s device_id=%s",
            user_id,
            stored.device_id,
        )
        return IssuedTrustedDevice(token=token, expires_at=expires_at, device=stored)

    def resolve(
        self,
        *,
        token: str | None,
        user_id: UserId,
        client_identity: str | None,
    ) -> TrustedDevice | None:
        """
        Resolve bearer token into a valid trusted device for this user and client.

        Args:
            token: Opaque bearer token presented by client; may be missing.
            user_id: User authenticated by primary credentials.
            client_identity: Live client identifying string.
        Returns:
            TrustedDevice | None: Valid device, or `None` for every kind of mismatch.
        Assumptions:
            Wrong user, unknown fingerprint, wrong token and expiry are indistinguishable.
        Raises:
            ValueError: If repository row mapping is malformed.
        Side Effects:
            Deletes the row when it is expired.
        """
        if token is None or not token.strip():
            return None
        device = self._repository.find_by_fingerprint(
            user_id=user_id,
            device_fingerprint=self.fingerprint(user_id=user_id, client_identity=client_identity),
        )
        if device is None:
            return None
        if device.is_expired(now=self._clock.now()):
            self._repository.delete(user_id=user_id, device_id=device.device_id)
            return None
        presented_hash = hash_trusted_device_token(token=token.strip())
        if not hmac.compare_digest(presented_hash, device.token_hash):
            return None
        return device

    def mark_used(self, *, device: TrustedDevice) -> TrustedDevice | None:
        return self._repository.touch(device_id=device.device_id, last_used_at=self._clock.now())

    def revoke_one(self, *, user_id: UserId, device_id: UUID) -> bool:
        """
        Revoke one device of user immediately.

        Args:
            user_id: Device owner.
            device_id: Device identifier.
        Returns:
            bool: `True` when device existed and was deleted.
        Assumptions:
            Devices of other users are untouched.
        Raises:
            None.
        Side Effects:
            Deletes at most one row.
        """
        revoked = self._repository.delete(user_id=user_id, device_id=device_id)
        if revoked:
            log.info(
                "identity trusted device revoked user_id=%s device_id=%s",
                user_id,
                device_id,
            )
        return revoked

    def revoke_all_except_current(
        self,
        *,
        user_id: UserId,
        current_fingerprint: str | None,
    ) -> int:
        revoked_count = self._repository.delete_all_except(
            user_id=user_id,
            keep_fingerprint=current_fingerprint,
        )
        log.info(
            "identity trusted devices revoked user_id=%s revoked_count=%s",
            user_id,
            revoked_count,
        )
        return revoked_count

    def list_devices(self, *, user_id: UserId) -> tuple[TrustedDevice, ...]:
        """
        List live devices of user after pruning the user's expired rows.

        Args:
            user_id: Device owner.
        Returns:
            tuple[TrustedDevice, ...]: Non-expired devices.
        Assumptions:
            Expired rows are deleted on read, never returned.
        Raises:
            ValueError: If repository row mapping is malformed.
        Side Effects:
            Deletes expired rows of this user.
        """
        now = self._clock.now()
        self._repository.delete_expired(now=now, user_id=user_id)
        return tuple(
            device
            for device in self._repository.list_for_user(user_id=user_id)
            if not device.is_expired(now=now)
        )

    def prune_expired(self) -> int:
        pruned = self._repository.delete_expired(now=self._clock.now())
        log.info("identity trusted devices pruned count=%s", pruned)
        return pruned
