"""Client-side encryption for sensitive user data.

Data is sealed with AES-GCM under a key derived from the user id with
PBKDF2-SHA256. The stored form is base64 of the 12-byte nonce followed by
the ciphertext and tag, so any client deriving the same key can open it.
"""

import base64
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

SALT = b"mindpal-salt"
ITERATIONS = 100_000
KEY_LENGTH = 32
NONCE_LENGTH = 12
DEFAULT_SECRET = "default-key"


def derive_key(secret: str | None) -> bytes:
    """Derive a 256-bit key; a missing secret falls back to the shared default."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=SALT,
        iterations=ITERATIONS,
    )
    return kdf.derive((secret or DEFAULT_SECRET).encode("utf-8"))


class DataCipher:
    """Encrypts and decrypts text under one derived key."""

    def __init__(self, secret: str | None) -> None:
        self._aead = AESGCM(derive_key(secret))

    def encrypt(self, data: str) -> str:
        nonce = os.urandom(NONCE_LENGTH)
        sealed = self._aead.encrypt(nonce, data.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Open ``token``; returns an empty string if it cannot be decrypted."""
        try:
            combined = base64.b64decode(token, validate=True)
            plain = self._aead.decrypt(combined[:NONCE_LENGTH], combined[NONCE_LENGTH:], None)
            return plain.decode("utf-8")
        except (InvalidTag, ValueError) as e:
            logger.error(f"Decryption failed: {type(e).__name__}")
            return ""
