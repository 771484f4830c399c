#!/usr/bin/env python3
"""
Encryption helpers for data stored at rest.

Tokens are encrypted with AES-256-GCM using a key derived from the master
secret with PBKDF2-SHA256. Each payload carries its own salt and IV:

    salt:iv:authTag:ciphertext   (every part base64 encoded)
"""

import base64
import binascii
import hashlib
import hmac
import os
import secrets
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..exceptions import EncryptionError

SALT_LENGTH = 32
IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
PBKDF2_ITERATIONS = 100000


def _derive_key(master_key: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(master_key.encode('utf-8'))


def encrypt(plaintext: str, master_key: str) -> str:
    """
    Encrypt a string with AES-256-GCM.

    Args:
        plaintext: Data to encrypt
        master_key: Secret the encryption key is derived from

    Returns:
        str: "salt:iv:authTag:ciphertext" with base64 encoded parts
    """
    if not master_key:
        raise EncryptionError("Encryption key is empty")

    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    key = _derive_key(master_key, salt)

    # AESGCM appends the tag to the ciphertext
    sealed = AESGCM(key).encrypt(iv, plaintext.encode('utf-8'), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    return ':'.join(
        base64.b64encode(part).decode('ascii')
        for part in (salt, iv, tag, ciphertext)
    )


def decrypt(encrypted: str, master_key: str) -> str:
    """
    Decrypt a payload produced by encrypt().

    Raises:
        EncryptionError: if the payload is malformed or fails authentication
    """
    parts = encrypted.strip().split(':')
    if len(parts) != 4:
        raise EncryptionError("Invalid encrypted data format")

    try:
        salt, iv, tag, ciphertext = (base64.b64decode(part, validate=True) for part in parts)
    except (binascii.Error, ValueError) as e:
        raise EncryptionError("Invalid encrypted data format") from e

    key = _derive_key(master_key, salt)
    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as e:
        raise EncryptionError("Failed to decrypt data: authentication failed") from e

    return plaintext.decode('utf-8')


def generate_secret() -> str:
    """Generate a random 256-bit secret as hex, suitable for OAUTH_ENCRYPTION_KEY"""
    return secrets.token_hex(32)


def generate_state_token() -> str:
    """Generate a random URL-safe nonce for OAuth state parameters"""
    return secrets.token_urlsafe(32)


def b64url_encode(data: Union[str, bytes]) -> str:
    """Base64url encode without padding"""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return base64.urlsafe_b64encode(data).rstrip(b'=').decode('ascii')


def b64url_decode(data: str) -> bytes:
    """Decode base64url with or without padding"""
    padding = '=' * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def hmac_sha256(secret: str, payload: str) -> str:
    """HMAC-SHA256 of payload, base64url encoded"""
    digest = hmac.new(secret.encode('utf-8'), payload.encode('utf-8'), hashlib.sha256).digest()
    return b64url_encode(digest)


def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode('utf-8'), b.encode('utf-8'))
