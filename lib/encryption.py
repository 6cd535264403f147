# =============================================================================
# lib/encryption.py - Secret Encryption at Rest
# =============================================================================
# Symmetric encryption for the managed API keys stored on hunter profiles.
#
# Blob layout (base64 encoded):
#
#   +-----------+------------+--------------------------+
#   | salt (16) | nonce (12) | ciphertext || tag (16)   |
#   +-----------+------------+--------------------------+
#
# A per-record AES-256 key is derived from the process-wide master key and
# the random salt with PBKDF2-HMAC-SHA256. The master key itself is never
# stored next to any blob.
#
# Usage:
#   from lib.encryption import encrypt_secret, decrypt_secret
#   blob = encrypt_secret("AIza...", master_key)
#   plaintext = decrypt_secret(blob, master_key)
# =============================================================================

from __future__ import annotations

import base64
import binascii
import logging
import secrets
import string

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

SALT_LENGTH = 16
NONCE_LENGTH = 12  # 96-bit nonce per NIST SP 800-38D
TAG_LENGTH = 16
KEY_LENGTH = 32  # AES-256
KDF_ITERATIONS = 100_000

MIN_BLOB_LENGTH = SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH

TOKEN_ALPHABET = string.ascii_letters + string.digits


class DecryptionError(ApplicationError):
    """
    Raised when a blob cannot be decrypted.

    Covers invalid base64, truncated blobs, failed authentication tags and
    wrong master keys. No partial plaintext is ever returned.
    """

    def __init__(self, reason: str):
        super().__init__(
            message=f"Decryption failed: {reason}",
            code="DECRYPTION_FAILED",
            suggestion="Check API_KEY_ENCRYPTION_KEY matches the key used to encrypt this record",
        )
        self.reason = reason


def _derive_key(master_key: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(master_key.encode("utf-8"))


def encrypt_secret(plaintext: str, master_key: str) -> str:
    """
    Encrypt *plaintext* with AES-256-GCM under a key derived from *master_key*.

    Each call draws a fresh salt and nonce from the OS CSPRNG, so encrypting
    the same plaintext twice yields two different blobs.

    Returns:
        base64( salt || nonce || ciphertext || tag )
    """
    salt = secrets.token_bytes(SALT_LENGTH)
    nonce = secrets.token_bytes(NONCE_LENGTH)

    aesgcm = AESGCM(_derive_key(master_key, salt))
    ct_and_tag = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)

    return base64.b64encode(salt + nonce + ct_and_tag).decode("ascii")


def decrypt_secret(blob: str, master_key: str) -> str:
    """
    Decrypt a blob produced by :func:`encrypt_secret`.

    Raises:
        DecryptionError: If the blob is not valid base64, is shorter than
            the fixed salt/nonce/tag overhead, fails GCM authentication, or
            does not decode to UTF-8.
    """
    try:
        combined = base64.b64decode(blob, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise DecryptionError("invalid base64 encoding") from e

    if len(combined) < MIN_BLOB_LENGTH:
        raise DecryptionError(
            f"blob is truncated ({len(combined)} bytes, need at least {MIN_BLOB_LENGTH})"
        )

    salt = combined[:SALT_LENGTH]
    nonce = combined[SALT_LENGTH:SALT_LENGTH + NONCE_LENGTH]
    ct_and_tag = combined[SALT_LENGTH + NONCE_LENGTH:]

    aesgcm = AESGCM(_derive_key(master_key, salt))
    try:
        plaintext = aesgcm.decrypt(nonce, ct_and_tag, None)
    except InvalidTag as e:
        raise DecryptionError("authentication tag mismatch (tampered data or wrong key)") from e

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("plaintext is not valid UTF-8") from e


def validate_encrypted_secret(blob: str, master_key: str) -> bool:
    """Return True only if *blob* decrypts cleanly under *master_key*."""
    try:
        decrypt_secret(blob, master_key)
    except DecryptionError as e:
        logger.debug(f"Encrypted secret failed validation: {e.reason}")
        return False
    return True


def generate_secure_token(length: int = 32) -> str:
    """
    Generate a random alphanumeric token of *length* characters.

    Characters are drawn with ``secrets.choice``, which samples uniformly
    from the 62-character alphabet.
    """
    if length < 0:
        raise ValueError("length must be non-negative")
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
