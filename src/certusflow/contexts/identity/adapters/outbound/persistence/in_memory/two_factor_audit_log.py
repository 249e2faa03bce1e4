from __future__ import annotations

import threading

from certusflow.contexts.identity.application.ports.two_factor_audit_log import TwoFactorAuditLog
from certusflow.contexts.identity.domain.entities import TwoFactorAuditEvent


class InMemoryIdentityTwoFactorAuditLog(TwoFactorAuditLog):
    """
    InMemoryIdentityTwoFactorAuditLog — process-local append-only audit sink.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/outbound/persistence/postgres/
        two_factor_audit_log.py
      - tests/unit/contexts/identity/application/test_two_factor_audit_recorder.py
    """

    def __init__(self) -> None:
        self._events: list[TwoFactorAuditEvent] = []
        self._lock = threading.Lock()

    def append(self, *, event: TwoFactorAuditEvent) -> None:
        with self._lock:
            self._events.append(event)

    def events(self) -> tuple[TwoFactorAuditEvent, ...]:
        with self._lock:
            return tuple(self._events)
