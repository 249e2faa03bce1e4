from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from apps.api.common import register_api_error_handlers
from certusflow.platform.errors import CertusflowError


class _Payload(BaseModel):
    code: str
    count: int


def _build_app() -> FastAPI:
    app = FastAPI()
    register_api_error_handlers(app=app)

    @app.get("/raise/{code}")
    def raise_error(code: str) -> dict[str, str]:
        raise CertusflowError(code=code, message="Boom", details={"key": "value"})

    @app.post("/validate")
    def validate(payload: _Payload) -> dict[str, str]:
        return {"code": payload.code}

    return app


def test_certusflow_error_codes_map_to_http_statuses() -> None:
    client = TestClient(_build_app())

    statuses = {
        code: client.get(f"/raise/{code}").status_code
        for code in (
            "validation_error",
            "not_found",
            "forbidden",
            "conflict",
            "unauthorized",
            "unexpected_error",
            "something_else",
        )
    }

    assert statuses == {
        "validation_error": 422,
        "not_found": 404,
        "forbidden": 403,
        "conflict": 409,
        "unauthorized": 401,
        "unexpected_error": 500,
        "something_else": 500,
    }


def test_certusflow_error_payload_shape() -> None:
    response = TestClient(_build_app()).get("/raise/not_found")

    assert response.json() == {
        "error": {"code": "not_found", "message": "Boom", "details": {"key": "value"}},
    }


def test_validation_errors_are_sorted_and_normalized() -> None:
    """
    Verify FastAPI validation errors become canonical `validation_error` payloads.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Pydantic reports missing fields with type `missing`.
    Raises:
        AssertionError: If payload is not deterministic.
    Side Effects:
        None.
    """
    response = TestClient(_build_app()).post("/validate", json={})

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "validation_error"
    assert [(item["path"], item["code"]) for item in error["details"]["errors"]] == [
        ("body.code", "required"),
        ("body.count", "required"),
    ]
