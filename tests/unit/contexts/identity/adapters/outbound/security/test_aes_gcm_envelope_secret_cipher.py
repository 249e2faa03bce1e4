from __future__ import annotations

import pytest

from certusflow.contexts.identity.adapters.outbound.security.two_factor import (
    AesGcmEnvelopeTwoFactorSecretCipher,
)
from certusflow.contexts.identity.application.ports import CorruptSecretError

_KEK_B64 = "cm9laHViLWRldi1pZGVudGl0eS0yZmEta2V5LTAwMDE="
_OTHER_KEK_B64 = "b3RoZXItaWRlbnRpdHktMmZhLWtlay0wMDAwMDAwMDE="
_SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"


def test_cipher_round_trips_secret_and_never_stores_plaintext() -> None:
    """
    Verify envelope cipher returns original secret and blob does not contain plaintext bytes.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Fresh DEK and nonces are generated per encryption call.
    Raises:
        AssertionError: If decryption differs or ciphertext leaks secret.
    Side Effects:
        None.
    """
    cipher = AesGcmEnvelopeTwoFactorSecretCipher(kek_b64=_KEK_B64)

    first = cipher.encrypt_secret(secret=_SECRET)
    second = cipher.encrypt_secret(secret=_SECRET)

    assert _SECRET.encode("utf-8") not in first
    assert first != second
    assert cipher.decrypt_secret(secret_enc=first) == _SECRET
    assert cipher.decrypt_secret(secret_enc=second) == _SECRET


def test_cipher_reports_every_single_bit_flip_as_corrupt_secret() -> None:
    """
    Verify any one-bit tampering of the blob raises CorruptSecretError and never returns text.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Header, nonces, wrapped DEK and ciphertext are all authenticated or length-checked.
    Raises:
        AssertionError: If a tampered blob decrypts or raises a different error type.
    Side Effects:
        None.
    """
    cipher = AesGcmEnvelopeTwoFactorSecretCipher(kek_b64=_KEK_B64)
    blob = cipher.encrypt_secret(secret=_SECRET)

    for byte_index in range(len(blob)):
        for bit_index in range(8):
            tampered = bytearray(blob)
            tampered[byte_index] ^= 1 << bit_index
            with pytest.raises(CorruptSecretError):
                cipher.decrypt_secret(secret_enc=bytes(tampered))


def test_cipher_rejects_truncated_blobs_and_foreign_kek() -> None:
    cipher = AesGcmEnvelopeTwoFactorSecretCipher(kek_b64=_KEK_B64)
    other_cipher = AesGcmEnvelopeTwoFactorSecretCipher(kek_b64=_OTHER_KEK_B64)
    blob = cipher.encrypt_secret(secret=_SECRET)

    for length in (0, 3, 5, 40, len(blob) - 1):
        with pytest.raises(CorruptSecretError):
            cipher.decrypt_secret(secret_enc=blob[:length])
    with pytest.raises(CorruptSecretError):
        other_cipher.decrypt_secret(secret_enc=blob)


@pytest.mark.parametrize(
    "kek_b64",
    [
        "",
        "not-base64-$$$",
        "c2hvcnQ=",
    ],
)
def test_cipher_rejects_missing_or_malformed_kek(kek_b64: str) -> None:
    with pytest.raises(ValueError):
        AesGcmEnvelopeTwoFactorSecretCipher(kek_b64=kek_b64)
