from .current_user import JwtBearerCurrentUser
from .jwt import Hs256JwtCodec
from .primary_auth import GoTruePrimaryCredentialVerifier, RejectAllPrimaryCredentialVerifier
from .two_factor import (
    AesGcmEnvelopeTwoFactorSecretCipher,
    PyOtpTwoFactorTotpProvider,
    Sha256TwoFactorBackupCodeCodec,
)

__all__ = [
    "AesGcmEnvelopeTwoFactorSecretCipher",
    "GoTruePrimaryCredentialVerifier",
    "Hs256JwtCodec",
    "JwtBearerCurrentUser",
    "PyOtpTwoFactorTotpProvider",
    "RejectAllPrimaryCredentialVerifier",
    "Sha256TwoFactorBackupCodeCodec",
]
