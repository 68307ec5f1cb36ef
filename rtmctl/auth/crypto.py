"""AES-256-GCM primitives for credential secrets.

Blob format: base64( nonce 12B | ciphertext | GCM tag 16B ).
Keys travel as 64 lowercase hex characters.

Never log plaintext, keys or blobs.
"""

from __future__ import annotations

import base64
import binascii
import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from rtmctl.auth.errors import DecryptionError

KEY_LENGTH = 32  # AES-256
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16


def _key_bytes(key: str) -> bytes:
    try:
        raw = bytes.fromhex(key)
    except (TypeError, ValueError) as exc:
        raise DecryptionError("Encryption key is not valid hex", cause=exc) from exc
    if len(raw) != KEY_LENGTH:
        raise DecryptionError(
            f"Encryption key must be {KEY_LENGTH} bytes, got {len(raw)}"
        )
    return raw


class CryptoService:
    """Symmetric authenticated encryption with no knowledge of credentials."""

    def generate_key(self) -> str:
        """Return a fresh random 256-bit key as hex."""
        return secrets.token_bytes(KEY_LENGTH).hex()

    def encrypt(self, plaintext: bytes, key: str) -> str:
        """Encrypt plaintext under key with a new random nonce.

        Two calls with identical arguments never return the same blob.
        """
        cipher = AESGCM(_key_bytes(key))
        nonce = os.urandom(NONCE_SIZE)
        ct = cipher.encrypt(nonce, plaintext, None)
        return base64.b64encode(nonce + ct).decode("ascii")

    def decrypt(self, blob: str, key: str) -> bytes:
        """Verify and decrypt a blob produced by encrypt().

        Raises:
            DecryptionError: wrong key, tampered or truncated blob, bad encoding.
        """
        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, TypeError, ValueError) as exc:
            raise DecryptionError("Encrypted blob is not valid base64", cause=exc) from exc

        _min = NONCE_SIZE + TAG_SIZE
        if len(raw) < _min:
            raise DecryptionError(
                f"Encrypted blob too short: {len(raw)} bytes (minimum {_min})"
            )

        cipher = AESGCM(_key_bytes(key))
        nonce = raw[:NONCE_SIZE]
        ct = raw[NONCE_SIZE:]
        try:
            return cipher.decrypt(nonce, ct, None)
        except InvalidTag as exc:
            raise DecryptionError(
                "Decryption failed: wrong key or tampered data", cause=exc
            ) from exc
