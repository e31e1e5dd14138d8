try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from ebay_lister.services.token_cipher import TokenCipherService


def test_token_cipher_roundtrip() -> None:
    cipher = TokenCipherService(secret="super-secret-key")
    plaintext = "v^1.1#i^1#r^0#access-token"

    encrypted = cipher.encrypt(plaintext)
    assert encrypted != plaintext

    decrypted = cipher.decrypt(encrypted)
    assert decrypted == plaintext


def test_token_cipher_rejects_bad_ciphertext() -> None:
    cipher = TokenCipherService(secret="another-secret")

    with pytest.raises(ValueError):
        cipher.decrypt("not-valid")


def test_obscure_is_deterministic_and_url_safe() -> None:
    first = TokenCipherService(secret="shared-secret")
    second = TokenCipherService(secret="shared-secret")

    token = first.obscure('{"access_token": "abc"}')

    assert token == second.obscure('{"access_token": "abc"}')
    assert "=" not in token and "+" not in token and "/" not in token
    assert second.reveal(token) == '{"access_token": "abc"}'


@pytest.mark.parametrize(
    "token",
    ["", "%%%not-base64%%%", "c2hvcnQ", "ünïcödé"],
)
def test_reveal_fails_softly_on_malformed_input(token: str) -> None:
    cipher = TokenCipherService(secret="shared-secret")

    assert cipher.reveal(token) is None


def test_reveal_rejects_tampered_token() -> None:
    cipher = TokenCipherService(secret="shared-secret")
    token = cipher.obscure("refresh-token-value")
    flipped = ("A" if token[10] != "A" else "B")
    tampered = token[:10] + flipped + token[11:]

    assert cipher.reveal(tampered) is None


def test_reveal_rejects_token_from_other_key_or_context() -> None:
    token = TokenCipherService(secret="key-one").obscure("payload")

    assert TokenCipherService(secret="key-two").reveal(token) is None
    assert TokenCipherService(secret="key-one", context="other").reveal(token) is None


def test_empty_secret_is_rejected() -> None:
    with pytest.raises(ValueError):
        TokenCipherService(secret="")
