from __future__ import annotations

from starlette.requests import Request

from certusflow.contexts.identity.application.services.two_factor_audit_recorder import (
    ClientContext,
)

_MAX_USER_AGENT_LENGTH = 512


def resolve_client_context(request: Request) -> ClientContext:
    """
    Extract best-effort client address and user agent from HTTP request.

    Args:
        request: FastAPI HTTP request.
    Returns:
        ClientContext: Client metadata for audit and device trust.
    Assumptions:
        Service runs behind a proxy that sets `X-Forwarded-For` or `X-Real-IP`;
        first forwarded hop is the client.
    Raises:
        None.
    Side Effects:
        None.
    """
    forwarded_for = request.headers.get("x-forwarded-for", "")
    ip_address = forwarded_for.split(",")[0].strip() or None
    if ip_address is None:
        ip_address = request.headers.get("x-real-ip", "").strip() or None
    if ip_address is None and request.client is not None:
        ip_address = request.client.host or None

    user_agent = request.headers.get("user-agent", "").strip() or None
    if user_agent is not None:
        user_agent = user_agent[:_MAX_USER_AGENT_LENGTH]
    return ClientContext(ip_address=ip_address, user_agent=user_agent)
