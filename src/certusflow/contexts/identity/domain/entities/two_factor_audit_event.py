from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from certusflow.shared_kernel.primitives import UserId


class TwoFactorAuditEventType(str, Enum):
    """
    Audit event types written by 2FA enrollment and login flows.

    Docs: docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related: .two_factor_auth, ...application.services.two_factor_audit_recorder
    """

    SETUP_INITIATED = "setup_initiated"
    VERIFY_ATTEMPT = "verify_attempt"
    ENABLED = "enabled"
    DISABLE_ATTEMPT = "disable_attempt"
    DISABLED = "disabled"
    LOGIN_FAILED = "login_failed"
    LOGIN_SUCCESS = "login_success"


@dataclass(frozen=True, slots=True)
class TwoFactorAuditEvent:
    """
    TwoFactorAuditEvent — append-only запись аудита для 2FA переходов и попыток входа.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_audit_log.py
      - src/certusflow/contexts/identity/application/services/two_factor_audit_recorder.py
      - alembic/versions/20261019_0001_identity_2fa_device_trust_v1.py
    """

    event_id: UUID
    user_id: UserId
    event_type: TwoFactorAuditEventType
    success: bool
    created_at: datetime
    failure_kind: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    def __post_init__(self) -> None:
        """
        Validate audit event invariants.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            `failure_kind` is only meaningful for unsuccessful attempts.
        Raises:
            ValueError: If timestamp is non-UTC or successful event carries a failure kind.
        Side Effects:
            None.
        """
        offset = self.created_at.utcoffset()
        if self.created_at.tzinfo is None or offset is None or offset.total_seconds() != 0:
            raise ValueError("TwoFactorAuditEvent.created_at must be timezone-aware UTC datetime")
        if self.success and self.failure_kind is not None:
            raise ValueError("TwoFactorAuditEvent.failure_kind must be None for successful events")
