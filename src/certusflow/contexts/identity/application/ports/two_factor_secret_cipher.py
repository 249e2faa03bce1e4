from __future__ import annotations

from typing import Protocol


class CorruptSecretError(ValueError):
    """
    CorruptSecretError — зашифрованный TOTP секрет поврежден или не прошел аутентификацию.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/outbound/security/two_factor/
        aes_gcm_envelope_secret_cipher.py
      - src/certusflow/contexts/identity/application/services/totp_code_checker.py
    """


class TwoFactorSecretCipher(Protocol):
    """
    TwoFactorSecretCipher — порт шифрования TOTP секретов at-rest.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/outbound/security/two_factor/
        aes_gcm_envelope_secret_cipher.py
      - src/certusflow/contexts/identity/application/use_cases/setup_two_factor_totp.py
      - apps/api/wiring/modules/identity.py
    """

    def encrypt_secret(self, *, secret: str) -> bytes:
        """
        Encrypt plaintext TOTP secret into a self-describing opaque blob.

        Args:
            secret: Plaintext base32 TOTP secret.
        Returns:
            bytes: Ciphertext blob for storage.
        Assumptions:
            Each call draws fresh random nonces.
        Raises:
            ValueError: If secret is empty.
        Side Effects:
            Uses OS CSPRNG.
        """
        ...

    def decrypt_secret(self, *, secret_enc: bytes) -> str:
        """
        Decrypt stored blob and return plaintext secret.

        Args:
            secret_enc: Ciphertext blob from storage.
        Returns:
            str: Plaintext base32 TOTP secret.
        Assumptions:
            Plaintext is used transiently and never persisted or logged.
        Raises:
            CorruptSecretError: If blob is truncated, tampered, or fails authentication.
        Side Effects:
            None.
        """
        ...
