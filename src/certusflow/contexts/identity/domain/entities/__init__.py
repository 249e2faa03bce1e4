from .trusted_device import TrustedDevice
from .two_factor_audit_event import TwoFactorAuditEvent, TwoFactorAuditEventType
from .two_factor_auth import TwoFactorAuth

__all__ = [
    "TrustedDevice",
    "TwoFactorAuditEvent",
    "TwoFactorAuditEventType",
    "TwoFactorAuth",
]
