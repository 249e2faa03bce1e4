from __future__ import annotations

from datetime import datetime, timezone

from certusflow.contexts.identity.application.ports.clock import IdentityClock


class SystemIdentityClock(IdentityClock):
    """
    SystemIdentityClock — platform реализация `IdentityClock` на системном UTC времени.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/clock.py
      - apps/api/wiring/modules/identity.py
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
