from __future__ import annotations

import hashlib
import hmac
import re
import secrets

from certusflow.contexts.identity.application.ports.two_factor_backup_code_codec import (
    TwoFactorBackupCodeCodec,
)

BACKUP_CODE_LENGTH = 8
_BACKUP_CODE_BYTES = BACKUP_CODE_LENGTH // 2
_BACKUP_CODE_PATTERN = re.compile(r"^[0-9A-F]{8}$")
_SEPARATORS = re.compile(r"[\s-]+")


class Sha256TwoFactorBackupCodeCodec(TwoFactorBackupCodeCodec):
    """
    Sha256TwoFactorBackupCodeCodec — генерация, нормализация и хеширование backup-кодов.

    Docs:
      - docs/architecture/identity/identity-2fa-device-trust-v1.md
    Related:
      - src/certusflow/contexts/identity/application/ports/two_factor_backup_code_codec.py
      - src/certusflow/contexts/identity/application/use_cases/verify_two_factor_totp.py
      - src/certusflow/contexts/identity/application/use_cases/login_two_factor_challenge.py
    """

    def generate_codes(self, *, count: int) -> tuple[str, ...]:
        """
        Generate distinct single-use backup codes.

        Args:
            count: Number of codes to generate.
        Returns:
            tuple[str, ...]: Canonical 8-character uppercase hex codes.
        Assumptions:
            Codes carry 32 bits of CSPRNG entropy each.
        Raises:
            ValueError: If count is not positive.
        Side Effects:
            Uses OS random source.
        """
        if count <= 0:
            raise ValueError("Sha256TwoFactorBackupCodeCodec count must be > 0")
        codes: list[str] = []
        while len(codes) < count:
            candidate = secrets.token_hex(_BACKUP_CODE_BYTES).upper()
            if candidate not in codes:
                codes.append(candidate)
        return tuple(codes)

    def normalize_code(self, *, code: str) -> str | None:
        """
        Normalize user input into canonical backup code form.

        Args:
            code: Raw submitted code, possibly in `XXXX-XXXX` display form.
        Returns:
            str | None: Canonical uppercase code or `None` when format is wrong.
        Assumptions:
            Dashes, spaces and letter case are cosmetic.
        Raises:
            None.
        Side Effects:
            None.
        """
        candidate = _SEPARATORS.sub("", code).upper()
        if not _BACKUP_CODE_PATTERN.match(candidate):
            return None
        return candidate

    def hash_code(self, *, code: str) -> str:
        return hashlib.sha256(code.encode("utf-8")).hexdigest()

    def verify_code(self, *, code: str, code_hash: str) -> bool:
        return hmac.compare_digest(self.hash_code(code=code), code_hash)
