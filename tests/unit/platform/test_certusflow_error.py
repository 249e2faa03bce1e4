from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import pytest

from certusflow.platform.errors import CertusflowError


def test_to_payload_normalizes_details_deterministically() -> None:
    error = CertusflowError(
        code=" not_found ",
        message="Trusted device not found",
        details={
            "z": (1, 2),
            "device_id": UUID("00000000-0000-0000-0000-00000000d001"),
            "at": datetime(2026, 10, 19, tzinfo=timezone.utc),
        },
    )

    payload = error.to_payload()

    assert payload == {
        "error": {
            "code": "not_found",
            "message": "Trusted device not found",
            "details": {
                "at": "2026-10-19 00:00:00+00:00",
                "device_id": "00000000-0000-0000-0000-00000000d001",
                "z": [1, 2],
            },
        }
    }
    assert list(payload["error"]["details"]) == ["at", "device_id", "z"]


def test_to_payload_without_details_returns_empty_mapping() -> None:
    assert CertusflowError(code="conflict", message="Conflict").to_payload()["error"][
        "details"
    ] == {}


@pytest.mark.parametrize(("code", "message"), [("", "message"), ("code", "  ")])
def test_blank_code_or_message_is_rejected(code: str, message: str) -> None:
    with pytest.raises(ValueError):
        CertusflowError(code=code, message=message)


def test_non_mapping_details_are_rejected() -> None:
    with pytest.raises(TypeError):
        CertusflowError(
            code="validation_error",
            message="bad",
            details=["x"],  # type: ignore[arg-type]
        )


def test_sensitive_detail_keys_are_redacted_at_any_depth() -> None:
    error = CertusflowError(
        code="validation_error",
        message="Validation failed",
        details={
            "password": "hunter2",
            "login": {"Access_Token": "eyJhbGciOi", "email": "trader@example.com"},
            "devices": [{"trusted_device_token": "ab" * 32, "device_name": "Chrome on Windows"}],
        },
    )

    assert error.to_payload()["error"]["details"] == {
        "devices": [{"device_name": "Chrome on Windows", "trusted_device_token": "[redacted]"}],
        "login": {"Access_Token": "[redacted]", "email": "trader@example.com"},
        "password": "[redacted]",
    }


def test_not_found_factory_names_resource_and_echoes_id() -> None:
    device_id = UUID("00000000-0000-0000-0000-00000000d002")

    error = CertusflowError.not_found(resource="Trusted device", resource_id=device_id)

    assert error.to_payload() == {
        "error": {
            "code": "not_found",
            "message": "Trusted device not found",
            "details": {"trusted_device_id": "00000000-0000-0000-0000-00000000d002"},
        }
    }


def test_not_found_factory_requires_resource_label() -> None:
    with pytest.raises(ValueError):
        CertusflowError.not_found(resource=" ", resource_id=1)
