from .device_name import extract_device_name
from .totp_code_checker import TotpCheckOutcome, TotpCodeChecker, normalize_totp_code
from .trusted_device_ledger import (
    TRUSTED_DEVICE_TTL_DAYS,
    IssuedTrustedDevice,
    TrustedDeviceLedger,
    TrustedDeviceMetadata,
    compute_device_fingerprint,
    hash_trusted_device_token,
)
from .two_factor_audit_recorder import ClientContext, TwoFactorAuditHooks, TwoFactorAuditRecorder

__all__ = [
    "TRUSTED_DEVICE_TTL_DAYS",
    "ClientContext",
    "IssuedTrustedDevice",
    "TotpCheckOutcome",
    "TotpCodeChecker",
    "TrustedDeviceLedger",
    "TrustedDeviceMetadata",
    "TwoFactorAuditHooks",
    "TwoFactorAuditRecorder",
    "compute_device_fingerprint",
    "extract_device_name",
    "hash_trusted_device_token",
    "normalize_totp_code",
]
