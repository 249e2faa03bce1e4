from __future__ import annotations

from typing import Mapping

from certusflow.contexts.identity.adapters.outbound import (
    PostgresIdentityTrustedDeviceRepository,
    PsycopgIdentityPostgresGateway,
    SystemIdentityClock,
)
from certusflow.contexts.identity.application import TrustedDeviceLedger

_IDENTITY_PG_DSN_KEY = "IDENTITY_PG_DSN"


def build_trusted_device_ledger(*, environ: Mapping[str, str]) -> TrustedDeviceLedger:
    """
    Build Postgres-backed trusted device ledger for maintenance commands.

    Args:
        environ: Runtime environment mapping.
    Returns:
        TrustedDeviceLedger: Ledger bound to `user_trusted_devices` storage.
    Assumptions:
        Maintenance commands never run against in-memory storage.
    Raises:
        ValueError: If `IDENTITY_PG_DSN` is missing.
    Side Effects:
        None.
    """
    dsn = environ.get(_IDENTITY_PG_DSN_KEY, "").strip()
    if not dsn:
        raise ValueError(f"{_IDENTITY_PG_DSN_KEY} must be set")
    gateway = PsycopgIdentityPostgresGateway(dsn=dsn)
    return TrustedDeviceLedger(
        repository=PostgresIdentityTrustedDeviceRepository(gateway=gateway),
        clock=SystemIdentityClock(),
    )
