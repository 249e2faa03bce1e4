from __future__ import annotations

import base64
import binascii
import os
import struct

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from certusflow.contexts.identity.application.ports.two_factor_secret_cipher import (
    CorruptSecretError,
    TwoFactorSecretCipher,
)

_BLOB_VERSION_V1 = 1
_NONCE_LENGTH = 12
_GCM_TAG_LENGTH = 16
_DEK_LENGTH = 32
_HEADER_STRUCT = struct.Struct(">BBBH")
_ENVELOPE_AAD = b"certusflow.identity.2fa.totp.v1"
_SUPPORTED_KEK_LENGTHS = {16, 24, 32}


class AesGcmEnvelopeTwoFactorSecretCipher(TwoFactorSecretCipher):
    """
    AesGcmEnvelopeTwoFactorSecretCipher — AES-GCM envelope cipher for identity TOTP secrets.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_secret_cipher.py
      - src/certusflow/contexts/identity/application/services/totp_code_checker.py
      - apps/api/wiring/modules/identity.py
    """

    def __init__(self, *, kek_b64: str) -> None:
        """
        Initialize envelope cipher using base64-encoded KEK from runtime settings.

        Args:
            kek_b64: Base64-encoded KEK bytes (`IDENTITY_2FA_KEK_B64`).
        Returns:
            None.
        Assumptions:
            KEK bytes length is one of AES valid sizes (16/24/32).
        Raises:
            ValueError: If KEK value is empty, malformed, or unsupported length.
        Side Effects:
            None.
        """
        normalized_kek_b64 = kek_b64.strip()
        if not normalized_kek_b64:
            raise ValueError("AesGcmEnvelopeTwoFactorSecretCipher requires non-empty kek_b64")
        try:
            kek_bytes = base64.b64decode(normalized_kek_b64, validate=True)
        except binascii.Error as error:
            raise ValueError("IDENTITY_2FA_KEK_B64 must be valid base64") from error
        if len(kek_bytes) not in _SUPPORTED_KEK_LENGTHS:
            raise ValueError(
                "IDENTITY_2FA_KEK_B64 must decode to 16, 24, or 32 bytes for AES-GCM"
            )
        self._kek = kek_bytes

    def encrypt_secret(self, *, secret: str) -> bytes:
        """
        Encrypt plaintext base32 TOTP secret using envelope encryption (DEK + KEK).

        Args:
            secret: Plaintext base32 TOTP secret.
        Returns:
            bytes: `header | dek_nonce | encrypted_dek | secret_nonce | encrypted_secret`.
        Assumptions:
            Fresh DEK and nonces per call, so equal secrets never produce equal blobs.
        Raises:
            ValueError: If secret is empty.
        Side Effects:
            Uses OS CSPRNG for DEK and nonces.
        """
        normalized_secret = secret.strip()
        if not normalized_secret:
            raise ValueError("AesGcmEnvelopeTwoFactorSecretCipher secret must be non-empty")

        dek = os.urandom(_DEK_LENGTH)
        dek_nonce = os.urandom(_NONCE_LENGTH)
        secret_nonce = os.urandom(_NONCE_LENGTH)
        encrypted_dek = AESGCM(self._kek).encrypt(dek_nonce, dek, _ENVELOPE_AAD)
        encrypted_secret = AESGCM(dek).encrypt(
            secret_nonce,
            normalized_secret.encode("utf-8"),
            _ENVELOPE_AAD,
        )

        header = _HEADER_STRUCT.pack(
            _BLOB_VERSION_V1,
            len(dek_nonce),
            len(secret_nonce),
            len(encrypted_dek),
        )
        return b"".join((header, dek_nonce, encrypted_dek, secret_nonce, encrypted_secret))

    def decrypt_secret(self, *, secret_enc: bytes) -> str:
        """
        Decrypt versioned envelope blob and return plaintext base32 TOTP secret.

        Args:
            secret_enc: Opaque encrypted blob from storage.
        Returns:
            str: Plaintext base32 TOTP secret.
        Assumptions:
            Any structural or authentication problem is reported as one error type.
        Raises:
            CorruptSecretError: If blob is malformed, tampered, or decrypts to invalid text.
        Side Effects:
            None.
        """
        blob = bytes(secret_enc)
        version, dek_nonce_len, secret_nonce_len, encrypted_dek_len, payload = _parse_header(
            blob=blob
        )
        if version != _BLOB_VERSION_V1:
            raise CorruptSecretError("Unsupported encrypted 2FA secret blob version")
        if dek_nonce_len != _NONCE_LENGTH or secret_nonce_len != _NONCE_LENGTH:
            raise CorruptSecretError("Encrypted 2FA secret blob contains invalid nonce length")
        if encrypted_dek_len != _DEK_LENGTH + _GCM_TAG_LENGTH:
            raise CorruptSecretError(
                "Encrypted 2FA secret blob contains invalid encrypted DEK length"
            )

        dek_nonce = payload[:dek_nonce_len]
        encrypted_dek_end = dek_nonce_len + encrypted_dek_len
        encrypted_dek = payload[dek_nonce_len:encrypted_dek_end]
        secret_nonce_end = encrypted_dek_end + secret_nonce_len
        secret_nonce = payload[encrypted_dek_end:secret_nonce_end]
        encrypted_secret = payload[secret_nonce_end:]

        try:
            dek = AESGCM(self._kek).decrypt(dek_nonce, encrypted_dek, _ENVELOPE_AAD)
            plaintext = AESGCM(dek).decrypt(secret_nonce, encrypted_secret, _ENVELOPE_AAD)
        except InvalidTag as error:
            raise CorruptSecretError("Encrypted 2FA secret blob authentication failed") from error

        try:
            secret = plaintext.decode("utf-8")
        except UnicodeDecodeError as error:
            raise CorruptSecretError("Encrypted 2FA secret plaintext is not valid UTF-8") from error
        if not secret:
            raise CorruptSecretError("Encrypted 2FA secret plaintext is empty")
        return secret


def _parse_header(*, blob: bytes) -> tuple[int, int, int, int, bytes]:
    """
    Parse envelope blob header and return metadata plus payload bytes.

    Args:
        blob: Complete encrypted secret blob.
    Returns:
        tuple[int, int, int, int, bytes]: `(version, dek_nonce_len, secret_nonce_len,
            encrypted_dek_len, payload)` tuple.
    Assumptions:
        Header uses deterministic binary layout from `_HEADER_STRUCT`.
    Raises:
        CorruptSecretError: If blob is shorter than header or payload is truncated.
    Side Effects:
        None.
    """
    if len(blob) < _HEADER_STRUCT.size:
        raise CorruptSecretError("Encrypted 2FA secret blob is too short")
    version, dek_nonce_len, secret_nonce_len, encrypted_dek_len = _HEADER_STRUCT.unpack_from(blob)
    payload = blob[_HEADER_STRUCT.size :]
    minimum_payload = dek_nonce_len + encrypted_dek_len + secret_nonce_len + _GCM_TAG_LENGTH + 1
    if len(payload) < minimum_payload:
        raise CorruptSecretError("Encrypted 2FA secret blob payload is truncated")
    return version, dek_nonce_len, secret_nonce_len, encrypted_dek_len, payload
