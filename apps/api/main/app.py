"""
FastAPI application factory for CertusFlow identity API.
"""

from __future__ import annotations

import os
from typing import Mapping

from fastapi import FastAPI
from prometheus_client import CollectorRegistry, make_asgi_app

from apps.api.common import register_api_error_handlers
from apps.api.wiring.modules import build_identity_api_module


def create_app(
    *,
    environ: Mapping[str, str] | None = None,
    registry: CollectorRegistry | None = None,
) -> FastAPI:
    """
    Build FastAPI app with identity 2FA and device-trust module wired at startup.

    Docs: docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related: apps.api.routes.identity,
      apps.api.wiring.modules.identity,
      apps.api.common.errors

    Args:
        environ: Optional environment mapping override.
        registry: Optional Prometheus registry; app-owned registry is created when omitted.
    Returns:
        FastAPI: Application instance with identity routes and `/metrics` exposition.
    Assumptions:
        Identity wiring performs fail-fast validation before first request.
    Raises:
        ValueError: If identity runtime settings are missing or invalid.
    Side Effects:
        Registers Prometheus counters in the app registry.
    """
    effective_environ = os.environ if environ is None else environ
    effective_registry = CollectorRegistry() if registry is None else registry

    app = FastAPI(
        title="CertusFlow API",
        version="1.0.0",
    )
    register_api_error_handlers(app=app)
    identity_module = build_identity_api_module(
        environ=effective_environ,
        registry=effective_registry,
    )
    app.include_router(identity_module.router)
    app.mount("/metrics", make_asgi_app(registry=effective_registry))
    return app
