"""Symmetric encryption for OAuth tokens at rest, with key rotation."""

from __future__ import annotations

import base64
import hashlib
from typing import Iterable, Optional

from cryptography.fernet import Fernet, InvalidToken, MultiFernet


def _derive_fernet(secret: str) -> Fernet:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


class TokenCipherService:
    """
    Encrypt with the current secret; decrypt with the current or any retired one.

    Retired secrets let operators rotate ``TOKEN_ENCRYPTION_SECRET`` without
    disconnecting every account.
    """

    def __init__(self, *, secret: str, previous_secrets: Iterable[str] = ()) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        keys = [_derive_fernet(secret)]
        keys.extend(_derive_fernet(old) for old in previous_secrets if old and old != secret)
        self._fernet = MultiFernet(keys)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError("Failed to decrypt token; invalid ciphertext provided.") from exc
        return plaintext.decode("utf-8")

    def encrypt_optional(self, plaintext: Optional[str]) -> Optional[str]:
        return self.encrypt(plaintext) if plaintext else None

    def decrypt_optional(self, ciphertext: Optional[str]) -> Optional[str]:
        return self.decrypt(ciphertext) if ciphertext else None


__all__ = ["TokenCipherService"]
