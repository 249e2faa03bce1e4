from __future__ import annotations

from uuid import UUID

import pytest

from certusflow.shared_kernel.primitives import UserId


def test_user_id_from_string_parses_canonical_uuid() -> None:
    user_id = UserId.from_string(" 00000000-0000-0000-0000-000000000001 ")

    assert user_id.value == UUID("00000000-0000-0000-0000-000000000001")
    assert str(user_id) == "00000000-0000-0000-0000-000000000001"


def test_user_id_rejects_blank_and_non_uuid_values() -> None:
    with pytest.raises(ValueError):
        UserId.from_string("   ")
    with pytest.raises(ValueError):
        UserId.from_string("not-a-uuid")
    with pytest.raises(ValueError):
        UserId("00000000-0000-0000-0000-000000000001")  # type: ignore[arg-type]
