from .entities import (
    TrustedDevice,
    TwoFactorAuditEvent,
    TwoFactorAuditEventType,
    TwoFactorAuth,
)

__all__ = [
    "TrustedDevice",
    "TwoFactorAuditEvent",
    "TwoFactorAuditEventType",
    "TwoFactorAuth",
]
