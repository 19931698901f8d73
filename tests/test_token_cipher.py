try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from reviewdesk.services.token_cipher import TokenCipherService


def test_token_cipher_roundtrip() -> None:
    cipher = TokenCipherService(secret="super-secret-key")
    plaintext = "ya29.sensitive-token"

    encrypted = cipher.encrypt(plaintext)
    assert encrypted != plaintext
    assert plaintext not in encrypted

    assert cipher.decrypt(encrypted) == plaintext


def test_token_cipher_rejects_bad_ciphertext() -> None:
    cipher = TokenCipherService(secret="another-secret")

    with pytest.raises(ValueError):
        cipher.decrypt("not-valid")


def test_token_cipher_accepts_retired_secret_after_rotation() -> None:
    old = TokenCipherService(secret="old-secret")
    ciphertext = old.encrypt("refresh-token")

    rotated = TokenCipherService(secret="new-secret", previous_secrets=("old-secret",))

    assert rotated.decrypt(ciphertext) == "refresh-token"
    with pytest.raises(ValueError):
        TokenCipherService(secret="new-secret").decrypt(ciphertext)


def test_token_cipher_optional_values_pass_through_none() -> None:
    cipher = TokenCipherService(secret="secret")

    assert cipher.encrypt_optional(None) is None
    assert cipher.decrypt_optional(None) is None
    assert cipher.decrypt_optional(cipher.encrypt_optional("value")) == "value"


def test_token_cipher_requires_secret() -> None:
    with pytest.raises(ValueError):
        TokenCipherService(secret="")
