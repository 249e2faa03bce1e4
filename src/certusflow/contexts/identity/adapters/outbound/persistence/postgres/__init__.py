from .gateway import IdentityPostgresGateway, PsycopgIdentityPostgresGateway
from .trusted_device_repository import PostgresIdentityTrustedDeviceRepository
from .two_factor_audit_log import PostgresIdentityTwoFactorAuditLog
from .two_factor_repository import PostgresIdentityTwoFactorRepository

__all__ = [
    "IdentityPostgresGateway",
    "PostgresIdentityTrustedDeviceRepository",
    "PostgresIdentityTwoFactorAuditLog",
    "PostgresIdentityTwoFactorRepository",
    "PsycopgIdentityPostgresGateway",
]
