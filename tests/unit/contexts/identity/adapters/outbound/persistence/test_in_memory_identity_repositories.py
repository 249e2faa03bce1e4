from __future__ import annotations

import hashlib
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from uuid import UUID

from certusflow.contexts.identity.adapters.outbound.persistence.in_memory import (
    InMemoryIdentityTrustedDeviceRepository,
    InMemoryIdentityTwoFactorRepository,
)
from certusflow.contexts.identity.domain import TrustedDevice
from certusflow.shared_kernel.primitives import UserId

_NOW = datetime(2026, 10, 19, 14, 0, 0, tzinfo=timezone.utc)
_USER_ID = UserId.from_string("00000000-0000-0000-0000-000000000601")


def _sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _device(
    *,
    device_id: int,
    fingerprint: str,
    token: str,
    last_used_at: datetime,
) -> TrustedDevice:
    return TrustedDevice(
        device_id=UUID(int=device_id),
        user_id=_USER_ID,
        device_fingerprint=_sha256_hex(fingerprint),
        token_hash=_sha256_hex(token),
        device_name="Chrome on Windows",
        ip_address=None,
        user_agent=None,
        created_at=_NOW,
        expires_at=_NOW + timedelta(days=30),
        last_used_at=last_used_at,
    )


def test_enable_requires_matching_pending_secret() -> None:
    repository = InMemoryIdentityTwoFactorRepository()
    repository.upsert_pending_secret(user_id=_USER_ID, totp_secret_enc=b"blob-1", updated_at=_NOW)

    stale = repository.enable(
        user_id=_USER_ID,
        expected_secret_enc=b"blob-0",
        backup_code_hashes=(_sha256_hex("A"),),
        verified_at=_NOW,
    )
    enabled = repository.enable(
        user_id=_USER_ID,
        expected_secret_enc=b"blob-1",
        backup_code_hashes=(_sha256_hex("A"),),
        verified_at=_NOW,
    )
    again = repository.enable(
        user_id=_USER_ID,
        expected_secret_enc=b"blob-1",
        backup_code_hashes=(_sha256_hex("B"),),
        verified_at=_NOW,
    )

    assert stale is None
    assert enabled is not None and enabled.enabled is True
    assert again is None


def test_upsert_pending_secret_leaves_enabled_record_untouched() -> None:
    repository = InMemoryIdentityTwoFactorRepository()
    repository.upsert_pending_secret(user_id=_USER_ID, totp_secret_enc=b"blob-1", updated_at=_NOW)
    enabled = repository.enable(
        user_id=_USER_ID,
        expected_secret_enc=b"blob-1",
        backup_code_hashes=(_sha256_hex("A"),),
        verified_at=_NOW,
    )

    result = repository.upsert_pending_secret(
        user_id=_USER_ID,
        totp_secret_enc=b"blob-2",
        updated_at=_NOW + timedelta(minutes=1),
    )

    assert result == enabled


def test_consume_backup_code_is_single_use_under_contention() -> None:
    """
    Verify concurrent consumers of one backup code observe exactly one success.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Repository lock serializes conditional removals.
    Raises:
        AssertionError: If hash can be consumed more than once.
    Side Effects:
        None.
    """
    repository = InMemoryIdentityTwoFactorRepository()
    hashes = tuple(_sha256_hex(f"code-{index}") for index in range(3))
    repository.upsert_pending_secret(user_id=_USER_ID, totp_secret_enc=b"blob", updated_at=_NOW)
    repository.enable(
        user_id=_USER_ID,
        expected_secret_enc=b"blob",
        backup_code_hashes=hashes,
        verified_at=_NOW,
    )

    with ThreadPoolExecutor(max_workers=16) as pool:
        outcomes = list(
            pool.map(
                lambda _: repository.consume_backup_code(
                    user_id=_USER_ID,
                    code_hash=hashes[1],
                    updated_at=_NOW,
                ),
                range(16),
            )
        )

    assert outcomes.count(True) == 1
    stored = repository.find_by_user_id(user_id=_USER_ID)
    assert stored is not None
    assert stored.backup_code_hashes == (hashes[0], hashes[2])


def test_delete_enabled_ignores_pending_record() -> None:
    repository = InMemoryIdentityTwoFactorRepository()
    repository.upsert_pending_secret(user_id=_USER_ID, totp_secret_enc=b"blob", updated_at=_NOW)

    assert repository.delete_enabled(user_id=_USER_ID) is False
    assert repository.find_by_user_id(user_id=_USER_ID) is not None


def test_trusted_device_upsert_keeps_original_identity_on_conflict() -> None:
    repository = InMemoryIdentityTrustedDeviceRepository()
    original = repository.upsert(
        device=_device(device_id=1, fingerprint="laptop", token="t1", last_used_at=_NOW),
    )

    refreshed = repository.upsert(
        device=_device(
            device_id=2,
            fingerprint="laptop",
            token="t2",
            last_used_at=_NOW + timedelta(hours=1),
        ),
    )

    assert refreshed.device_id == original.device_id
    assert refreshed.token_hash == _sha256_hex("t2")
    assert len(repository.list_for_user(user_id=_USER_ID)) == 1


def test_delete_all_except_keeps_only_named_fingerprint() -> None:
    repository = InMemoryIdentityTrustedDeviceRepository()
    for index, name in enumerate(("laptop", "phone", "tablet"), start=1):
        repository.upsert(
            device=_device(device_id=index, fingerprint=name, token=name, last_used_at=_NOW),
        )

    assert repository.delete_all_except(
        user_id=_USER_ID,
        keep_fingerprint=_sha256_hex("phone"),
    ) == 2
    assert [device.device_fingerprint for device in repository.list_for_user(user_id=_USER_ID)] == [
        _sha256_hex("phone"),
    ]
    assert repository.delete_all_except(user_id=_USER_ID, keep_fingerprint=None) == 1
