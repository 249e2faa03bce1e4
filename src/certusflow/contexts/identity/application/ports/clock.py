from __future__ import annotations

from datetime import datetime
from typing import Protocol


class IdentityClock(Protocol):
    """
    IdentityClock — порт источника текущего времени для identity use-cases.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
      - src/certusflow/contexts/identity/adapters/outbound/time/system_identity_clock.py
      - src/certusflow/contexts/identity/adapters/outbound/security/jwt/hs256_jwt_codec.py
    """

    def now(self) -> datetime:
        """
        Return current UTC timestamp used in identity flow.

        Args:
            None.
        Returns:
            datetime: Timezone-aware UTC datetime.
        Assumptions:
            Implementations return monotonic wall-clock progression for request flow.
        Raises:
            None.
        Side Effects:
            None.
        """
        ...
