"""Small helper to build a PocketPrompt app context for the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pocketprompt.core.config import Settings
from pocketprompt.core.storage import PromptStore
from pocketprompt.database.connection import DatabaseConnection
from pocketprompt.security.encryption import EncryptionService
from pocketprompt.security.identity import (
    ChainedIdentityProvider,
    KeyringIdentityProvider,
    StaticIdentityProvider,
)


@dataclass
class AppContext:
    """Container for runtime objects the commands need."""

    settings: Settings
    db: DatabaseConnection
    encryption: EncryptionService
    store: PromptStore
    keyring_identity: KeyringIdentityProvider

    async def current_identity(self) -> Optional[str]:
        return await self.encryption.identity_provider.get_identity()

    def close(self) -> None:
        self.encryption.clear_session_cache()
        self.db.close()


def build_context(settings: Optional[Settings] = None) -> AppContext:
    """
    Open the database and wire the encryption service to an identity.

    Identity resolution order:

    - ``POCKETPROMPT_IDENTITY`` (``settings.identity``), for scripts and CI
    - the identity remembered in the OS keystore by ``identity set``
    """
    settings = settings or Settings.from_env()

    db = DatabaseConnection(settings.db_path)
    db.initialize()

    keyring_identity = KeyringIdentityProvider(settings.keyring_service)
    identity_provider = ChainedIdentityProvider(
        [StaticIdentityProvider(settings.identity), keyring_identity]
    )
    encryption = EncryptionService(
        identity_provider,
        iterations=settings.kdf_iterations,
        protocol_version=settings.protocol_version,
    )
    store = PromptStore(db, encryption)

    return AppContext(
        settings=settings,
        db=db,
        encryption=encryption,
        store=store,
        keyring_identity=keyring_identity,
    )
