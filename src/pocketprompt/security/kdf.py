import base64
import hashlib
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

# Changing either of these changes every derived key
PROTOCOL_VERSION = "Pocket-Prompt-v3.5"
DEFAULT_ITERATIONS = 250_000
KEY_LENGTH = 32


def protocol_salt(protocol_version: str = PROTOCOL_VERSION) -> bytes:
    """Return the fixed, app-wide salt for a protocol version."""
    return protocol_version.lower().encode("utf-8")


def derive_master_key(
    identity: str,
    password: str,
    salt: Optional[bytes] = None,
    iterations: int = DEFAULT_ITERATIONS,
    key_len: int = KEY_LENGTH,
) -> bytes:
    """
    Derive a master key from ``identity:password`` using PBKDF2-HMAC-SHA256.
    Deterministic: the same identity, password and salt always give the same bytes,
    which is what lets another device decrypt the same content.
    Returns raw derived key bytes.
    """
    if salt is None:
        salt = protocol_salt()

    material = f"{identity}:{password}".encode("utf-8")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=key_len,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(material)


def password_fingerprint(password: str) -> str:
    """Cache-invalidation fingerprint of a password. Not used for encryption."""
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")
