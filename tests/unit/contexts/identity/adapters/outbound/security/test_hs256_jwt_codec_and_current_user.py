from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from certusflow.contexts.identity.adapters.outbound.security.current_user import (
    JwtBearerCurrentUser,
)
from certusflow.contexts.identity.adapters.outbound.security.jwt import Hs256JwtCodec
from certusflow.contexts.identity.application.ports import (
    CurrentUserUnauthorizedError,
    IdentityClock,
)
from certusflow.contexts.identity.application.ports.jwt_codec import (
    IdentityJwtClaims,
    JwtDecodeError,
)
from certusflow.shared_kernel.primitives import UserId

_NOW = datetime(2026, 10, 19, 10, 0, 0, tzinfo=timezone.utc)
_USER_ID = UserId.from_string("00000000-0000-0000-0000-000000000301")


class _FixedClock(IdentityClock):
    def __init__(self, *, now_value: datetime) -> None:
        self._now_value = now_value

    def now(self) -> datetime:
        return self._now_value


def _claims(*, expires_in: timedelta = timedelta(hours=1)) -> IdentityJwtClaims:
    return IdentityJwtClaims(
        user_id=_USER_ID,
        email="alice@example.com",
        issued_at=_NOW,
        expires_at=_NOW + expires_in,
    )


def test_jwt_codec_round_trips_subject_and_email() -> None:
    codec = Hs256JwtCodec(secret_key="test-secret", clock=_FixedClock(now_value=_NOW))

    claims = codec.decode(token=codec.encode(claims=_claims()))

    assert claims.user_id == _USER_ID
    assert claims.email == "alice@example.com"
    assert claims.expires_at == _NOW + timedelta(hours=1)


def test_jwt_codec_rejects_foreign_signature_expired_and_garbage_tokens() -> None:
    """
    Verify decode maps signature, expiry, and format problems to stable error codes.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Token expiring exactly at `now` is already expired with zero leeway.
    Raises:
        AssertionError: If an invalid token decodes or the error code differs.
    Side Effects:
        None.
    """
    clock = _FixedClock(now_value=_NOW)
    codec = Hs256JwtCodec(secret_key="test-secret", clock=clock)
    foreign_codec = Hs256JwtCodec(secret_key="other-secret", clock=clock)

    with pytest.raises(JwtDecodeError) as signature_error:
        codec.decode(token=foreign_codec.encode(claims=_claims()))
    assert signature_error.value.code == "invalid_signature"

    expired_token = codec.encode(
        claims=IdentityJwtClaims(
            user_id=_USER_ID,
            email=None,
            issued_at=_NOW - timedelta(hours=2),
            expires_at=_NOW,
        )
    )
    with pytest.raises(JwtDecodeError) as expired_error:
        codec.decode(token=expired_token)
    assert expired_error.value.code == "expired_token"

    with pytest.raises(JwtDecodeError) as format_error:
        codec.decode(token="only.two")
    assert format_error.value.code == "invalid_token_format"


def test_bearer_current_user_maps_decode_errors_to_unauthorized() -> None:
    clock = _FixedClock(now_value=_NOW)
    codec = Hs256JwtCodec(secret_key="test-secret", clock=clock)
    current_user = JwtBearerCurrentUser(jwt_codec=codec)

    principal = current_user.require(token=codec.encode(claims=_claims()))
    assert principal.user_id == _USER_ID
    assert principal.email == "alice@example.com"

    with pytest.raises(CurrentUserUnauthorizedError) as missing_error:
        current_user.require(token=None)
    assert missing_error.value.code == "missing_token"

    with pytest.raises(CurrentUserUnauthorizedError) as invalid_error:
        current_user.require(token="a.b.c")
    assert invalid_error.value.code in {"invalid_token_format", "invalid_header"}
