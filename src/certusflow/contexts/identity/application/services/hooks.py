from __future__ import annotations

from typing import Callable


def emit_hook(callback: Callable[[], None] | None) -> None:
    """
    Execute optional observability hook callback.

    Docs: docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/services/two_factor_audit_recorder.py
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py

    Args:
        callback: Callback without arguments.
    Returns:
        None.
    Assumptions:
        Hook callbacks are lightweight counter increments.
    Raises:
        None.
    Side Effects:
        Executes callback when provided.
    """
    if callback is not None:
        callback()
