from .aes_gcm_envelope_secret_cipher import AesGcmEnvelopeTwoFactorSecretCipher
from .pyotp_totp_provider import TOTP_VALID_WINDOW_STEPS, PyOtpTwoFactorTotpProvider
from .sha256_backup_code_codec import BACKUP_CODE_LENGTH, Sha256TwoFactorBackupCodeCodec

__all__ = [
    "BACKUP_CODE_LENGTH",
    "TOTP_VALID_WINDOW_STEPS",
    "AesGcmEnvelopeTwoFactorSecretCipher",
    "PyOtpTwoFactorTotpProvider",
    "Sha256TwoFactorBackupCodeCodec",
]
