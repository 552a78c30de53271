"""
Sealing of secrets stored at rest.

The shop repository only depends on the `TokenCipher` protocol; the default
implementation is AES-256-GCM keyed by ENCRYPTION_KEY. Sealed values are
strings of the form ``gcm::<iv_b64>::<tag_b64>::<data_b64>`` so they fit a
plain text column.

Plaintext and key material never appear in exception messages or logs.
"""

from __future__ import annotations

import base64
import binascii
import os
import re
from typing import Optional, Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from blossom.config import get_config

PREFIX = "gcm"
SEPARATOR = "::"
KEY_BYTES = 32
IV_BYTES = 12
TAG_BYTES = 16

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


class EncryptionError(Exception):
    """Raised when a value cannot be sealed or opened."""


class TokenCipher(Protocol):
    def seal(self, plaintext: str) -> str: ...

    def open(self, ciphertext: str) -> str: ...


def decode_key(raw: str) -> bytes:
    """
    Decode ENCRYPTION_KEY: 64 hex characters are read as hex, anything else
    as base64 (standard or URL-safe, with or without padding). The result
    must be exactly 32 bytes.
    """
    if not raw:
        raise EncryptionError("ENCRYPTION_KEY is required")

    if _HEX_KEY.match(raw):
        key = bytes.fromhex(raw)
    else:
        padded = raw + "=" * (-len(raw) % 4)
        try:
            key = base64.b64decode(padded, altchars=b"-_", validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncryptionError("ENCRYPTION_KEY is neither hex nor base64") from e

    if len(key) != KEY_BYTES:
        raise EncryptionError(f"ENCRYPTION_KEY must decode to {KEY_BYTES} bytes, got {len(key)}")
    return key


class AesGcmCipher:
    """AES-256-GCM `TokenCipher` with a random 96-bit nonce per value."""

    def __init__(self, key: bytes):
        if len(key) != KEY_BYTES:
            raise EncryptionError(f"AES-256-GCM key must be {KEY_BYTES} bytes")
        self._aead = AESGCM(key)

    @classmethod
    def from_encoded_key(cls, raw: str) -> "AesGcmCipher":
        return cls(decode_key(raw))

    def seal(self, plaintext: str) -> str:
        if not isinstance(plaintext, str):
            raise EncryptionError("Only str values can be sealed")

        iv = os.urandom(IV_BYTES)
        try:
            data_bytes = plaintext.encode("utf-8")
        except UnicodeEncodeError:
            raise EncryptionError("Value is not valid UTF-8 text") from None

        # AESGCM appends the tag to the ciphertext.
        sealed = self._aead.encrypt(iv, data_bytes, None)
        data, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return SEPARATOR.join(
            [
                PREFIX,
                base64.b64encode(iv).decode("ascii"),
                base64.b64encode(tag).decode("ascii"),
                base64.b64encode(data).decode("ascii"),
            ]
        )

    def open(self, ciphertext: str) -> str:
        if not ciphertext or not ciphertext.startswith(PREFIX + SEPARATOR):
            raise EncryptionError("Invalid ciphertext format")

        parts = ciphertext.split(SEPARATOR)
        if len(parts) != 4:
            raise EncryptionError("Invalid ciphertext format")

        try:
            iv, tag, data = (base64.b64decode(p, validate=True) for p in parts[1:])
        except (binascii.Error, ValueError) as e:
            raise EncryptionError("Invalid ciphertext encoding") from e

        if len(iv) != IV_BYTES or len(tag) != TAG_BYTES:
            raise EncryptionError("Invalid ciphertext format")

        try:
            plaintext = self._aead.decrypt(iv, data + tag, None)
        except InvalidTag as e:
            raise EncryptionError("Ciphertext failed authentication; wrong key or corrupted value") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise EncryptionError("Opened value is not valid UTF-8 text") from None


def get_token_cipher(encryption_key: Optional[str] = None) -> AesGcmCipher:
    """Build the cipher from an explicit key or from ENCRYPTION_KEY."""
    raw = encryption_key if encryption_key is not None else get_config().encryption_key
    return AesGcmCipher.from_encoded_key(raw or "")


def encrypt_to_string(plaintext: str) -> str:
    return get_token_cipher().seal(plaintext)


def decrypt_from_string(ciphertext: str) -> str:
    return get_token_cipher().open(ciphertext)
