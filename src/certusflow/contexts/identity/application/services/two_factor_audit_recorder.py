from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable
from uuid import uuid4

from certusflow.contexts.identity.application.ports.clock import IdentityClock
from certusflow.contexts.identity.application.ports.two_factor_audit_log import (
    TwoFactorAuditLog,
)
from certusflow.contexts.identity.application.services.hooks import emit_hook
from certusflow.contexts.identity.domain.entities import (
    TwoFactorAuditEvent,
    TwoFactorAuditEventType,
)
from certusflow.shared_kernel.primitives import UserId

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClientContext:
    """
    ClientContext — метаданные клиента запроса (IP и User-Agent) для аудита и trusted devices.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/inbound/api/deps/client_context.py
      - src/certusflow/contexts/identity/application/services/trusted_device_ledger.py
    """

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class TwoFactorAuditHooks:
    """
    TwoFactorAuditHooks — optional callbacks for audit write counters.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - apps/api/wiring/modules/identity.py
    """

    on_audit_write_failed: Callable[[], None] | None = None


class TwoFactorAuditRecorder:
    """
    TwoFactorAuditRecorder — fail-open writer of 2FA audit events.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_audit_log.py
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
      - apps/api/wiring/modules/identity.py
    """

    def __init__(
        self,
        *,
        audit_log: TwoFactorAuditLog,
        clock: IdentityClock,
        hooks: TwoFactorAuditHooks | None = None,
    ) -> None:
        """
        Initialize recorder dependencies.

        Args:
            audit_log: Append-only audit storage port.
            clock: UTC time source for `created_at`.
            hooks: Optional metric callbacks.
        Returns:
            None.
        Assumptions:
            Audit storage may be unavailable; security decisions never depend on it.
        Raises:
            ValueError: If dependencies are missing.
        Side Effects:
            None.
        """
        if audit_log is None:  # type: ignore[truthy-bool]
            raise ValueError("TwoFactorAuditRecorder requires audit_log")
        if clock is None:  # type: ignore[truthy-bool]
            raise ValueError("TwoFactorAuditRecorder requires clock")

        self._audit_log = audit_log
        self._clock = clock
        self._hooks = hooks if hooks is not None else TwoFactorAuditHooks()

    def record(
        self,
        *,
        user_id: UserId,
        event_type: TwoFactorAuditEventType,
        success: bool,
        failure_kind: str | None = None,
        client: ClientContext | None = None,
    ) -> None:
        """
        Append one audit event, swallowing and logging any write failure.

        Args:
            user_id: Subject user.
            event_type: Audit event type.
            success: Outcome flag.
            failure_kind: Internal failure kind for unsuccessful attempts.
            client: Optional request metadata.
        Returns:
            None.
        Assumptions:
            Logging is fail-open, authorization stays fail-closed in callers.
        Raises:
            None.
        Side Effects:
            Writes one audit record; on failure logs exception and emits hook.
        """
        effective_client = client if client is not None else ClientContext()
        try:
            event = TwoFactorAuditEvent(
                event_id=uuid4(),
                user_id=user_id,
                event_type=event_type,
                success=success,
                created_at=self._clock.now(),
                failure_kind=None if success else failure_kind,
                ip_address=effective_client.ip_address,
                user_agent=effective_client.user_agent,
            )
            self._audit_log.append(event=event)
        except Exception:  # noqa: BLE001
            log.exception(
                "identity 2fa audit append failed event_type=%s user_id=%s",
                event_type.value,
                user_id,
            )
            emit_hook(self._hooks.on_audit_write_failed)
