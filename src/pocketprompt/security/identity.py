"""Identity providers: where the address/ID used for key derivation comes from."""
from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Optional, Protocol, Sequence, Union

from .keystore import delete_identity, load_identity, save_identity

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def get_identity(self) -> Union[Optional[str], Awaitable[Optional[str]]]:
        ...


class StaticIdentityProvider:
    """Holds the identity in memory; connect/disconnect replace it."""

    def __init__(self, identity: Optional[str] = None):
        self._identity = identity

    def get_identity(self) -> Optional[str]:
        return self._identity

    def connect(self, identity: str) -> None:
        self._identity = identity

    def disconnect(self) -> None:
        self._identity = None


class KeyringIdentityProvider:
    """Remembers the identity in the OS keystore across runs."""

    def __init__(self, service: str = "pocketprompt"):
        self.service = service

    def get_identity(self) -> Optional[str]:
        return load_identity(self.service)

    def connect(self, identity: str) -> None:
        save_identity(self.service, identity)
        logger.info("Identity %s saved to keystore", identity)

    def disconnect(self) -> None:
        if delete_identity(self.service):
            logger.info("Identity removed from keystore")


class ChainedIdentityProvider:
    """Returns the first identity any of its providers can resolve."""

    def __init__(self, providers: Sequence[IdentityProvider]):
        self.providers = list(providers)

    async def get_identity(self) -> Optional[str]:
        for provider in self.providers:
            identity = provider.get_identity()
            if inspect.isawaitable(identity):
                identity = await identity
            if identity:
                return identity
        return None
