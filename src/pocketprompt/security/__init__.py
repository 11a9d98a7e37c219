"""Security helpers: master key derivation, session caching and envelope encryption for PocketPrompt.

This package provides:
- PBKDF2 master key derivation from identity + password
- A per-service session cache with single-flight derivation
- Per-item content keys wrapped by the master key (AES-256-GCM)
- The tag policy deciding what gets encrypted
"""

from .kdf import derive_master_key, password_fingerprint, protocol_salt
from .crypto import MasterKey, generate_cek, wrap_cek, unwrap_cek, encrypt_envelope, decrypt_envelope
from .session import Session, SessionManager
from .identity import StaticIdentityProvider, KeyringIdentityProvider, ChainedIdentityProvider
from .policy import should_encrypt, was_encrypted, is_envelope, to_content
from .encryption import EncryptionService

__all__ = [
    "derive_master_key",
    "password_fingerprint",
    "protocol_salt",
    "MasterKey",
    "generate_cek",
    "wrap_cek",
    "unwrap_cek",
    "encrypt_envelope",
    "decrypt_envelope",
    "Session",
    "SessionManager",
    "StaticIdentityProvider",
    "KeyringIdentityProvider",
    "ChainedIdentityProvider",
    "should_encrypt",
    "was_encrypted",
    "is_envelope",
    "to_content",
    "EncryptionService",
]
