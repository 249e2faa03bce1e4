from .trusted_device_repository import InMemoryIdentityTrustedDeviceRepository
from .two_factor_audit_log import InMemoryIdentityTwoFactorAuditLog
from .two_factor_repository import InMemoryIdentityTwoFactorRepository

__all__ = [
    "InMemoryIdentityTrustedDeviceRepository",
    "InMemoryIdentityTwoFactorAuditLog",
    "InMemoryIdentityTwoFactorRepository",
]
