from .application import (
    ClientContext,
    CorruptSecretError,
    CurrentUser,
    CurrentUserPrincipal,
    CurrentUserUnauthorizedError,
    IdentityClock,
    PrimaryCredentialSession,
    PrimaryCredentialVerifier,
    PrimaryCredentialVerifierError,
    TrustedDeviceLedger,
    TwoFactorAuditRecorder,
)
from .domain import (
    TrustedDevice,
    TwoFactorAuditEvent,
    TwoFactorAuditEventType,
    TwoFactorAuth,
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
    "TrustedDevice",
    "TrustedDeviceLedger",
    "TwoFactorAuditEvent",
    "TwoFactorAuditEventType",
    "TwoFactorAuditRecorder",
    "TwoFactorAuth",
]
