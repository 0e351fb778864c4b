"""
Vault Crypto Core — Key derivation, encryption/decryption, and serialization.

Implements password-based encryption for vault payloads:
- Key derivation: PBKDF2-HMAC-SHA256(password, salt 16B, N rounds) → 32B key
- Cipher: AES-256-GCM with a random 96-bit nonce per encryption

Security Note:
    Never log plaintext, ciphertext or key material.
    Nonces are random 96-bit; collision probability negligible under normal usage.
    Every decryption failure surfaces as DecryptionError with the same message.
"""
import os
import asyncio
import base64
import binascii
import logging
from typing import Any

import orjson
from pydantic import BaseModel
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import PBKDF2_ITERATIONS, SALT_LENGTH
from .exceptions import DecryptionError

logger = logging.getLogger("offpass.vault")

NONCE_SIZE = 12  # 96-bit nonce
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def generate_salt() -> bytes:
    """Generate a cryptographically random 16-byte salt."""
    return os.urandom(SALT_LENGTH)


def derive_key(
    password: str,
    salt: bytes | None = None,
    iterations: int = PBKDF2_ITERATIONS,
) -> tuple[bytes, bytes]:
    """Derive a 32-byte encryption key using PBKDF2-HMAC-SHA256.

    Deterministic for a given (password, salt, iterations).

    Args:
        password: Master password.
        salt: 16-byte salt; a random one is generated when omitted.
        iterations: PBKDF2 round count stored with the vault.

    Returns:
        Tuple of (key, salt).
    """
    if salt is None:
        salt = generate_salt()
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8")), salt


async def derive_key_async(
    password: str,
    salt: bytes | None = None,
    iterations: int = PBKDF2_ITERATIONS,
) -> tuple[bytes, bytes]:
    """Run :func:`derive_key` in a worker thread."""
    return await asyncio.to_thread(derive_key, password, salt, iterations)


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to canonical bytes for encryption.

    Pydantic models are dumped in JSON mode using their aliases.

    Args:
        value: Model, dict, list or JSON primitive.

    Returns:
        orjson-encoded bytes.
    """
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    return orjson.dumps(value, option=orjson.OPT_SORT_KEYS)


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes produced by :func:`serialize_value`."""
    return orjson.loads(data)


# ---------------------------------------------------------------------------
# Authenticated encryption
# ---------------------------------------------------------------------------

def encrypt(key: bytes, value: Any) -> tuple[bytes, bytes]:
    """Encrypt a value with AES-256-GCM.

    Args:
        key: 32-byte key from :func:`derive_key`.
        value: Value to serialize and encrypt.

    Returns:
        Tuple of (ciphertext + GCM tag, iv).
    """
    plaintext = serialize_value(value)
    iv = os.urandom(NONCE_SIZE)
    ct = AESGCM(key).encrypt(iv, plaintext, None)
    return ct, iv


def decrypt(key: bytes, ciphertext: bytes, iv: bytes) -> Any:
    """Decrypt and deserialize an AES-256-GCM payload.

    Args:
        key: 32-byte key.
        ciphertext: Encrypted payload including the GCM tag.
        iv: 12-byte nonce used at encryption.

    Returns:
        The original value (as plain JSON types).

    Raises:
        DecryptionError: On any failure, whatever the cause.
    """
    try:
        if len(iv) != NONCE_SIZE or len(ciphertext) < TAG_SIZE:
            raise ValueError("malformed ciphertext or iv")
        plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
        return deserialize_value(plaintext)
    except (InvalidTag, ValueError, TypeError, orjson.JSONDecodeError) as err:
        raise DecryptionError() from err


# ---------------------------------------------------------------------------
# Storage encoding
# ---------------------------------------------------------------------------

def b64encode(data: bytes) -> str:
    """Encode binary data for storage (base64)."""
    return base64.b64encode(data).decode("ascii")


def b64decode(data: str) -> bytes:
    """Decode a stored base64 field.

    Raises:
        DecryptionError: If the field is not valid base64.
    """
    try:
        return base64.b64decode(data.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, AttributeError) as err:
        raise DecryptionError() from err
