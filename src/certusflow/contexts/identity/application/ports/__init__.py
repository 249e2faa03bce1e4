from .clock import IdentityClock
from .current_user import CurrentUser, CurrentUserPrincipal, CurrentUserUnauthorizedError
from .jwt_codec import IdentityJwtClaims, JwtCodec, JwtDecodeError
from .primary_credential_verifier import (
    PrimaryCredentialSession,
    PrimaryCredentialVerifier,
    PrimaryCredentialVerifierError,
)
from .trusted_device_repository import TrustedDeviceRepository
from .two_factor_audit_log import TwoFactorAuditLog
from .two_factor_backup_code_codec import TwoFactorBackupCodeCodec
from .two_factor_repository import TwoFactorRepository
from .two_factor_secret_cipher import CorruptSecretError, TwoFactorSecretCipher
from .two_factor_totp_provider import TwoFactorTotpProvider

__all__ = [
    "CorruptSecretError",
    "CurrentUser",
    "CurrentUserPrincipal",
    "CurrentUserUnauthorizedError",
    "IdentityClock",
    "IdentityJwtClaims",
    "JwtCodec",
    "JwtDecodeError",
    "PrimaryCredentialSession",
    "PrimaryCredentialVerifier",
    "PrimaryCredentialVerifierError",
    "TrustedDeviceRepository",
    "TwoFactorAuditLog",
    "TwoFactorBackupCodeCodec",
    "TwoFactorRepository",
    "TwoFactorSecretCipher",
    "TwoFactorTotpProvider",
]
