"""
Token encryption utilities for secure storage.

Uses AES-256-GCM (AESGCM from the cryptography library). Each call draws a
fresh 96-bit nonce; nonce, authentication tag and ciphertext are stored as
separate base64 fields. Decryption verifies the tag and raises on mismatch.
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""

    pass


@dataclass(frozen=True)
class EncryptedValue:
    """Base64-encoded ciphertext, nonce and tag."""

    ciphertext: str
    iv: str
    tag: str


def load_cipher_key(secret_b64: str | None) -> bytes | None:
    """
    Decode the token-encryption key.

    The secret must decode to exactly 32 bytes. Anything else (missing,
    malformed, wrong length) means encryption is not configured; the key is
    never padded or truncated.

    Args:
        secret_b64: Standard base64 text, e.g. from MAL_TOKENS_SECRET

    Returns:
        Raw key bytes, or None if unusable
    """
    if not secret_b64:
        return None
    try:
        raw = base64.b64decode(secret_b64, validate=True)
    except (binascii.Error, ValueError):
        logger.warning("Token encryption key is not valid base64; encryption disabled")
        return None
    if len(raw) != KEY_SIZE:
        logger.warning(
            "Token encryption key has wrong length; encryption disabled",
            extra={"key_length": len(raw)},
        )
        return None
    return raw


def encrypt_string(plaintext: str, key: bytes) -> EncryptedValue:
    """
    Encrypt a token string.

    Args:
        plaintext: The token value to encrypt
        key: 32-byte key from load_cipher_key()

    Returns:
        EncryptedValue with independent ciphertext/iv/tag fields

    Raises:
        EncryptionError: If encryption fails
    """
    try:
        nonce = os.urandom(NONCE_SIZE)
        sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    except Exception as e:
        logger.error(f"Failed to encrypt token: {type(e).__name__}")
        raise EncryptionError(f"Encryption failed: {e}") from e

    # AESGCM appends the tag to the ciphertext
    ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return EncryptedValue(
        ciphertext=base64.b64encode(ciphertext).decode("ascii"),
        iv=base64.b64encode(nonce).decode("ascii"),
        tag=base64.b64encode(tag).decode("ascii"),
    )


def decrypt_string(value: EncryptedValue, key: bytes) -> str:
    """
    Decrypt an encrypted token.

    Args:
        value: Ciphertext, nonce and tag as produced by encrypt_string()
        key: 32-byte key

    Returns:
        Decrypted plaintext token

    Raises:
        EncryptionError: On tag mismatch, wrong key or malformed fields
    """
    try:
        ciphertext = base64.b64decode(value.ciphertext, validate=True)
        nonce = base64.b64decode(value.iv, validate=True)
        tag = base64.b64decode(value.tag, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise EncryptionError("Decryption failed: malformed fields") from e

    if len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
        raise EncryptionError("Decryption failed: malformed fields")

    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        raise EncryptionError("Decryption failed: invalid tag or key mismatch") from e
    except ValueError as e:
        raise EncryptionError(f"Decryption failed: {e}") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncryptionError("Decryption failed: plaintext is not UTF-8") from e


def generate_cipher_key() -> str:
    """
    Generate a new base64 AES-256 key.

    This is a utility function for generating keys during setup.
    The generated key can be used as MAL_TOKENS_SECRET.
    """
    return base64.b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")
