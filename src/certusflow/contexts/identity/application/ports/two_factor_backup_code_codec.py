from __future__ import annotations

from typing import Protocol


class TwoFactorBackupCodeCodec(Protocol):
    """
    TwoFactorBackupCodeCodec — порт генерации и одностороннего хеширования backup кодов.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/adapters/outbound/security/two_factor/
        sha256_backup_code_codec.py
      - src/certusflow/contexts/identity/application/use_cases/verify_two_factor_totp.py
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
    """

    def generate_codes(self, *, count: int) -> tuple[str, ...]:
        """
        Generate independent fixed-width plaintext backup codes.

        Args:
            count: Number of codes in the batch.
        Returns:
            tuple[str, ...]: Plaintext codes in canonical (undecorated) form.
        Assumptions:
            Codes are disclosed exactly once to the user.
        Raises:
            ValueError: If count is not positive.
        Side Effects:
            Uses OS CSPRNG.
        """
        ...

    def normalize_code(self, *, code: str) -> str | None:
        """
        Normalize user input into canonical code form.

        Args:
            code: Raw user input, possibly with display separators.
        Returns:
            str | None: Canonical code, or `None` when input is malformed.
        Assumptions:
            Display grouping characters are ignored.
        Raises:
            None.
        Side Effects:
            None.
        """
        ...

    def hash_code(self, *, code: str) -> str:
        """
        Hash canonical code with a one-way function.

        Args:
            code: Canonical plaintext code.
        Returns:
            str: Lowercase hex digest.
        Assumptions:
            Equal codes always produce equal hashes.
        Raises:
            ValueError: If code is malformed.
        Side Effects:
            None.
        """
        ...

    def verify_code(self, *, code: str, code_hash: str) -> bool:
        """
        Recompute hash and compare in constant time.

        Args:
            code: Canonical plaintext code.
            code_hash: Stored hash.
        Returns:
            bool: `True` when hashes match.
        Assumptions:
            Comparison must not leak timing information.
        Raises:
            None.
        Side Effects:
            None.
        """
        ...
