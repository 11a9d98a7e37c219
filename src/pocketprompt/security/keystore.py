"""OS keystore integration using keyring for remembering the connected identity.

Only the identity (an address/ID) is stored here. The master key is never
written to the keystore; it is re-derived from identity + password.
"""
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..core.exceptions import StorageError

IDENTITY_ACCOUNT = "identity"


def save_identity(service: str, identity: str, account: str = IDENTITY_ACCOUNT) -> None:
    """Persist the identity in the OS keystore under (service, account)."""
    try:
        keyring.set_password(service, account, identity)
    except KeyringError as e:
        raise StorageError(f"failed to save identity to OS keystore: {e}") from e


def load_identity(service: str, account: str = IDENTITY_ACCOUNT) -> Optional[str]:
    """Load the stored identity; returns None if nothing is stored."""
    try:
        return keyring.get_password(service, account)
    except KeyringError as e:
        raise StorageError(f"failed to read identity from OS keystore: {e}") from e


def delete_identity(service: str, account: str = IDENTITY_ACCOUNT) -> bool:
    """Remove the stored identity. Returns False if there was nothing to remove."""
    try:
        keyring.delete_password(service, account)
    except PasswordDeleteError:
        return False
    except KeyringError as e:
        raise StorageError(f"failed to delete identity from OS keystore: {e}") from e
    return True


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the current keyring backend.

    Heuristics are used because the `keyring` package exposes different backends
    across platforms.
    """
    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    insecure_indicators = ("Plaintext", "Uncrypted", "Simple", "File")
    if any(tok in name for tok in insecure_indicators):
        return False, f"insecure backend detected: {name}"

    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"

    if "Win" in name or "Keychain" in name or "SecretService" in name or "KWallet" in name:
        return True, f"backend looks acceptable: {name} (priority={priority})"

    return True, f"unknown backend '{name}', treat with caution (priority={priority})"
