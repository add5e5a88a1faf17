"""
At-rest encryption for persisted session state.

Blobs use the format ``iv:authTag:ciphertext`` (lowercase hex) produced by
AES-256-GCM with a 16-byte IV, which keeps session files written by earlier
releases of the desktop app readable.
"""

import os
import re
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from vam.errors import DecryptionError, EncryptionUnavailable
from vam.logger import get_logger

logger = get_logger(__name__)

IV_BYTES = 16
TAG_BYTES = 16
_SECRET_RE = re.compile(r"[0-9a-fA-F]{64}")
_FIELD_RE = re.compile(r"(?:[0-9a-f]{2})*")


def generate_secret() -> str:
    """Generate a new 256-bit secret as 64 hex characters."""
    return secrets.token_hex(32)


class EncryptionCodec:
    """
    Symmetric authenticated encryption keyed by an operator-supplied secret.

    The codec is unavailable unless the secret is exactly 64 hex characters.
    Callers are expected to check ``is_available()`` and persist plaintext
    when it returns False.
    """

    def __init__(self, secret_hex: Optional[str] = None):
        self._aead: Optional[AESGCM] = None
        if secret_hex and _SECRET_RE.fullmatch(secret_hex):
            self._aead = AESGCM(bytes.fromhex(secret_hex))
        elif secret_hex:
            logger.warning(
                "Ignoring malformed at-rest secret (expected 64 hex characters)"
            )

    def is_available(self) -> bool:
        return self._aead is not None

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a string.

        Returns:
            ``iv:tag:ciphertext`` in lowercase hex.

        Raises:
            EncryptionUnavailable: If no valid secret is configured.
        """
        if self._aead is None:
            raise EncryptionUnavailable("Encryption key is not available")

        iv = os.urandom(IV_BYTES)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, blob: str) -> str:
        """
        Decrypt a blob produced by ``encrypt``.

        Raises:
            EncryptionUnavailable: If no valid secret is configured.
            DecryptionError: For any malformed, tampered or foreign blob.
        """
        if self._aead is None:
            raise EncryptionUnavailable("Encryption key is not available")

        try:
            fields = blob.split(":")
            if len(fields) != 3 or not all(_FIELD_RE.fullmatch(f) for f in fields):
                raise ValueError("not three lowercase hex fields")
            iv_hex, tag_hex, ciphertext_hex = fields
            iv = bytes.fromhex(iv_hex)
            tag = bytes.fromhex(tag_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
            if len(iv) != IV_BYTES or len(tag) != TAG_BYTES:
                raise ValueError("bad field length")
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
            return plaintext.decode("utf-8")
        except (ValueError, InvalidTag, UnicodeDecodeError) as e:
            logger.warning(f"Decrypt failed: {type(e).__name__}")
            raise DecryptionError("Unable to decrypt data") from None
