from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

REDACTED_DETAIL_VALUE = "[redacted]"
# Keys are compared lowercased; suffix match covers `access_token`, `totp_secret`, etc.
_SENSITIVE_DETAIL_KEY_SUFFIXES = ("password", "secret", "token", "otpauth_uri", "backup_codes")


@dataclass(frozen=True, slots=True)
class CertusflowError(Exception):
    """
    CertusflowError — платформенная ошибка API с детерминированным и безопасным payload.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - apps/api/common/errors.py
      - src/certusflow/contexts/identity/adapters/inbound/api/routes/trusted_devices.py
      - tests/unit/platform/test_certusflow_error.py
    """

    code: str
    message: str
    details: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        """
        Normalize code/message and copy details into a sorted plain payload with secrets masked.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            `code` is the machine-readable token used by the HTTP status table.
        Raises:
            ValueError: If `code` or `message` are blank.
            TypeError: If `details` is not a mapping when provided.
        Side Effects:
            Replaces frozen slots `code`, `message` and `details` with normalized values.
        """
        normalized_code = self.code.strip()
        normalized_message = self.message.strip()
        if not normalized_code:
            raise ValueError("CertusflowError.code must be non-empty")
        if not normalized_message:
            raise ValueError("CertusflowError.message must be non-empty")
        object.__setattr__(self, "code", normalized_code)
        object.__setattr__(self, "message", normalized_message)

        if self.details is None:
            return
        if not isinstance(self.details, Mapping):
            raise TypeError("CertusflowError.details must be a mapping when provided")
        object.__setattr__(self, "details", _to_plain(value=self.details))

    @classmethod
    def not_found(cls, *, resource: str, resource_id: object) -> CertusflowError:
        """
        Build `not_found` error for an owned resource lookup.

        Args:
            resource: Human label, e.g. `Trusted device`.
            resource_id: Identifier echoed in details as `<resource>_id`.
        Returns:
            CertusflowError: Error mapped to HTTP 404.
        Assumptions:
            Foreign and unknown ids produce the same error.
        Raises:
            ValueError: If resource label is blank.
        Side Effects:
            None.
        """
        label = resource.strip()
        if not label:
            raise ValueError("CertusflowError.not_found requires non-empty resource")
        id_key = f"{label.lower().replace(' ', '_')}_id"
        return cls(
            code="not_found",
            message=f"{label} not found",
            details={id_key: resource_id},
        )

    def to_payload(self) -> dict[str, Any]:
        details_payload = dict(self.details) if self.details is not None else {}
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": details_payload,
            }
        }


def _is_sensitive_key(*, key: str) -> bool:
    normalized = key.lower()
    return any(normalized.endswith(suffix) for suffix in _SENSITIVE_DETAIL_KEY_SUFFIXES)


def _to_plain(*, value: Any) -> Any:
    if isinstance(value, Mapping):
        plain: dict[str, Any] = {}
        for raw_key in sorted(value, key=str):
            key = str(raw_key)
            if _is_sensitive_key(key=key):
                plain[key] = REDACTED_DETAIL_VALUE
            else:
                plain[key] = _to_plain(value=value[raw_key])
        return plain
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [_to_plain(value=item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
