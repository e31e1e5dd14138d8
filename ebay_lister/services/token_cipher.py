"""Symmetric encryption utilities for protecting tokens."""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESSIV

logger = logging.getLogger(__name__)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


class TokenCipherService:
    """Encrypt and decrypt sensitive strings with a derived AES-SIV key.

    AES-SIV is deterministic: the same secret and plaintext always produce the
    same ciphertext, while tampering is still detected on decryption.
    """

    def __init__(self, *, secret: str, context: str = "ebay-token") -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        key = hashlib.sha512(secret.encode("utf-8")).digest()
        self._aead = AESSIV(key)
        self._associated_data = [context.encode("utf-8")]

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the ciphertext."""
        token = self._aead.encrypt(plaintext.encode("utf-8"), self._associated_data)
        return _b64encode(token)

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a ciphertext string and return the plaintext."""
        try:
            plaintext = self._aead.decrypt(_b64decode(ciphertext), self._associated_data)
            return plaintext.decode("utf-8")
        except (InvalidTag, binascii.Error, UnicodeError, ValueError) as exc:
            raise ValueError(
                "Failed to decrypt token; invalid ciphertext provided."
            ) from exc

    def obscure(self, plaintext: str) -> str:
        """Return an opaque token safe to hand to the browser."""
        return self.encrypt(plaintext)

    def reveal(self, token: str | None) -> str | None:
        """Return the plaintext, or ``None`` when the token cannot be read."""
        if not token:
            return None
        try:
            return self.decrypt(token)
        except ValueError:
            logger.info("Discarding unreadable token (%d chars).", len(token))
            return None


__all__ = ["TokenCipherService"]
