from .ports import (
    CorruptSecretError,
    CurrentUser,
    CurrentUserPrincipal,
    CurrentUserUnauthorizedError,
    IdentityClock,
    PrimaryCredentialSession,
    PrimaryCredentialVerifier,
    PrimaryCredentialVerifierError,
    TrustedDeviceRepository,
    TwoFactorAuditLog,
    TwoFactorBackupCodeCodec,
    TwoFactorRepository,
    TwoFactorSecretCipher,
    TwoFactorTotpProvider,
)
from .services import (
    ClientContext,
    TotpCodeChecker,
    TrustedDeviceLedger,
    TwoFactorAuditHooks,
    TwoFactorAuditRecorder,
)

__all__ = [
    "ClientContext",
    "CorruptSecretError",
    "CurrentUser",
    "CurrentUserPrincipal",
    "CurrentUserUnauthorizedError",
    "IdentityClock",
    "PrimaryCredentialSession",
    "PrimaryCredentialVerifier",
    "PrimaryCredentialVerifierError",
    "TotpCodeChecker",
    "TrustedDeviceLedger",
    "TrustedDeviceRepository",
    "TwoFactorAuditHooks",
    "TwoFactorAuditLog",
    "TwoFactorAuditRecorder",
    "TwoFactorBackupCodeCodec",
    "TwoFactorRepository",
    "TwoFactorSecretCipher",
    "TwoFactorTotpProvider",
]
