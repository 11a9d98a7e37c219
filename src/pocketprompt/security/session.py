"""In-memory session cache for the derived master key, with single-flight derivation.

A SessionManager owns at most one Session. The Session remembers which
identity and password fingerprint its key belongs to; any request for a
different pair throws it away and derives again. While a derivation runs,
its task is parked on the Session so concurrent callers for the same pair
await that one task instead of starting their own.

Callers are shielded from the task: cancelling a caller does not cancel the
derivation, which still completes and fills the cache for the next caller.
A SessionManager is bound to the event loop that first uses it.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Optional

from ..core.exceptions import DerivationError, IdentityUnavailableError
from .crypto import MasterKey
from .identity import IdentityProvider
from .kdf import DEFAULT_ITERATIONS, PROTOCOL_VERSION, derive_master_key, password_fingerprint, protocol_salt

logger = logging.getLogger(__name__)


class Session:
    __slots__ = ("owner_identity", "password_fingerprint", "master_key", "pending_derivation")

    def __init__(self, owner_identity: str, password_fingerprint: str):
        self.owner_identity = owner_identity
        self.password_fingerprint = password_fingerprint
        self.master_key: Optional[MasterKey] = None
        self.pending_derivation: Optional[asyncio.Task] = None

    def matches(self, identity: str, fingerprint: str) -> bool:
        return self.owner_identity == identity and self.password_fingerprint == fingerprint

    def __repr__(self):
        state = "ready" if self.master_key is not None else "deriving" if self.pending_derivation else "empty"
        return f"Session(owner_identity={self.owner_identity!r}, state={state})"


class SessionManager:
    def __init__(
        self,
        identity_provider: IdentityProvider,
        iterations: int = DEFAULT_ITERATIONS,
        protocol_version: str = PROTOCOL_VERSION,
    ):
        self._identity_provider = identity_provider
        self._iterations = iterations
        self._salt = protocol_salt(protocol_version)
        self._session: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def has_key(self) -> bool:
        return self._session is not None and self._session.master_key is not None

    async def resolve_identity(self) -> str:
        """Ask the provider for the current identity; raise if there is none."""
        try:
            identity = self._identity_provider.get_identity()
            if inspect.isawaitable(identity):
                identity = await identity
        except Exception as e:
            raise IdentityUnavailableError(f"Could not resolve identity: {e}") from e

        if not identity:
            raise IdentityUnavailableError("No identity connected")
        return identity

    async def get_or_create_master_key(self, password: str) -> MasterKey:
        """Return the cached master key for the current identity and password.

        Derives it (once, however many callers are waiting) when the cache is
        empty or belongs to another identity or password.
        """
        identity = await self.resolve_identity()
        fingerprint = password_fingerprint(password)

        # no await between here and parking the task on the session
        session = self._session
        if session is not None and session.matches(identity, fingerprint):
            if session.master_key is not None:
                logger.debug("Using cached master key")
                return session.master_key
            if session.pending_derivation is not None:
                logger.debug("Master key derivation in progress, waiting")
                return await asyncio.shield(session.pending_derivation)

        if session is not None:
            logger.debug("Session does not match request, invalidating")

        session = Session(identity, fingerprint)
        self._session = session
        session.pending_derivation = asyncio.ensure_future(self._derive(session, password))
        return await asyncio.shield(session.pending_derivation)

    async def _derive(self, session: Session, password: str) -> MasterKey:
        logger.info("Deriving master key for identity %s", session.owner_identity)
        try:
            raw = await asyncio.to_thread(
                derive_master_key,
                session.owner_identity,
                password,
                self._salt,
                self._iterations,
            )
            master_key = MasterKey(raw)
        except Exception as e:
            if self._session is session:
                self._session = None
            raise DerivationError(f"Failed to derive master key: {e}") from e
        finally:
            session.pending_derivation = None

        # a clear() or a newer request may have replaced the session meanwhile
        if self._session is session:
            session.master_key = master_key
            logger.info("Master key derived")
        return master_key

    def clear(self) -> None:
        """Drop the session. Safe to call when there is none."""
        if self._session is not None:
            logger.info("Session cache cleared")
        self._session = None
