from .persistence import (
    IdentityPostgresGateway,
    InMemoryIdentityTrustedDeviceRepository,
    InMemoryIdentityTwoFactorAuditLog,
    InMemoryIdentityTwoFactorRepository,
    PostgresIdentityTrustedDeviceRepository,
    PostgresIdentityTwoFactorAuditLog,
    PostgresIdentityTwoFactorRepository,
    PsycopgIdentityPostgresGateway,
)
from .security import (
    AesGcmEnvelopeTwoFactorSecretCipher,
    GoTruePrimaryCredentialVerifier,
    Hs256JwtCodec,
    JwtBearerCurrentUser,
    PyOtpTwoFactorTotpProvider,
    RejectAllPrimaryCredentialVerifier,
    Sha256TwoFactorBackupCodeCodec,
)
from .time import SystemIdentityClock

__all__ = [
    "AesGcmEnvelopeTwoFactorSecretCipher",
    "GoTruePrimaryCredentialVerifier",
    "Hs256JwtCodec",
    "IdentityPostgresGateway",
    "InMemoryIdentityTrustedDeviceRepository",
    "InMemoryIdentityTwoFactorAuditLog",
    "InMemoryIdentityTwoFactorRepository",
    "JwtBearerCurrentUser",
    "PostgresIdentityTrustedDeviceRepository",
    "PostgresIdentityTwoFactorAuditLog",
    "PostgresIdentityTwoFactorRepository",
    "PsycopgIdentityPostgresGateway",
    "PyOtpTwoFactorTotpProvider",
    "RejectAllPrimaryCredentialVerifier",
    "Sha256TwoFactorBackupCodeCodec",
    "SystemIdentityClock",
]
