from .in_memory import (
    InMemoryIdentityTrustedDeviceRepository,
    InMemoryIdentityTwoFactorAuditLog,
    InMemoryIdentityTwoFactorRepository,
)
from .postgres import (
    IdentityPostgresGateway,
    PostgresIdentityTrustedDeviceRepository,
    PostgresIdentityTwoFactorAuditLog,
    PostgresIdentityTwoFactorRepository,
    PsycopgIdentityPostgresGateway,
)

__all__ = [
    "IdentityPostgresGateway",
    "InMemoryIdentityTrustedDeviceRepository",
    "InMemoryIdentityTwoFactorAuditLog",
    "InMemoryIdentityTwoFactorRepository",
    "PostgresIdentityTrustedDeviceRepository",
    "PostgresIdentityTwoFactorAuditLog",
    "PostgresIdentityTwoFactorRepository",
    "PsycopgIdentityPostgresGateway",
]
