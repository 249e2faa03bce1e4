from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from apps.api.main import create_app
from apps.api.wiring.modules import IdentityTwoFactorMetrics, build_identity_api_module

_KEK_B64 = "cm9laHViLWRldi1pZGVudGl0eS0yZmEta2V5LTAwMDE="
_DEV_ENVIRON = {"CERTUSFLOW_ENV": "test", "IDENTITY_2FA_KEK_B64": _KEK_B64}


def test_login_and_audit_hooks_increment_counters() -> None:
    registry = CollectorRegistry()
    metrics = IdentityTwoFactorMetrics(registry=registry)
    login_hooks = metrics.login_hooks()

    login_hooks.on_login_success()
    login_hooks.on_login_success()
    login_hooks.on_backup_code_consumed()
    metrics.audit_hooks().on_audit_write_failed()

    assert registry.get_sample_value("identity_2fa_login_success_total") == 2.0
    assert registry.get_sample_value("identity_2fa_backup_code_consumed_total") == 1.0
    assert registry.get_sample_value("identity_2fa_audit_write_failures_total") == 1.0
    assert registry.get_sample_value("identity_2fa_login_failure_total") == 0.0


def test_wired_module_counts_rejected_login() -> None:
    """
    Verify the default wiring rejects logins without a primary provider and counts them.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Without `IDENTITY_PRIMARY_AUTH_URL` every login is rejected as invalid credentials.
    Raises:
        AssertionError: If counters or response contract differ.
    Side Effects:
        None.
    """
    registry = CollectorRegistry()
    app = create_app(environ=_DEV_ENVIRON, registry=registry)
    client = TestClient(app)

    response = client.post("/2fa/login", json={"email": "a@example.com", "password": "x"})

    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "invalid_credentials"
    assert registry.get_sample_value("identity_2fa_login_failure_total") == 1.0


def test_metrics_endpoint_exposes_identity_counters() -> None:
    client = TestClient(create_app(environ=_DEV_ENVIRON))

    response = client.get("/metrics/")

    assert response.status_code == 200
    assert "identity_2fa_trusted_device_bypass_total" in response.text


def test_module_exposes_shared_current_user_dependency() -> None:
    module = build_identity_api_module(environ=_DEV_ENVIRON, registry=CollectorRegistry())

    assert module.current_user_dependency is not None
    app = FastAPI()
    app.include_router(module.router)
    paths = set(app.openapi()["paths"])
    assert {
        "/2fa/setup",
        "/2fa/verify",
        "/2fa/disable",
        "/2fa/status",
        "/2fa/login",
        "/2fa/trusted-devices",
        "/2fa/trusted-devices/{device_id}",
        "/2fa/trusted-devices/revoke-others",
    } <= paths
