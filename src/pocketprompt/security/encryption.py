"""
Encryption service for PocketPrompt content.

One long-lived :class:`EncryptionService` owns the session cache and is
handed to whatever needs to encrypt or decrypt (the prompt store, the CLI).
There is no module-level state: two services never share a master key.

State machine of an item's content:

- ``Plain`` -> ``Envelope`` when the tags make it private and a password is given
- ``Envelope`` -> ``Plain`` with the right password
- ``Envelope`` -> error with a missing or wrong password (caller may retry)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional, Sequence, Union

from ..core.exceptions import CorruptEnvelopeError, PasswordRequiredError
from ..core.models import Content, Envelope, Plain
from .crypto import decode_envelope, decrypt_envelope, encrypt_envelope
from .identity import IdentityProvider
from .kdf import DEFAULT_ITERATIONS, PROTOCOL_VERSION
from .policy import should_encrypt, to_content
from .session import SessionManager

logger = logging.getLogger(__name__)


class EncryptionService:
    """
    Envelope encryption bound to one identity provider.

    Responsibilities:

    - deriving (and caching) the master key from identity + password
    - sealing content into an :class:`Envelope` with a fresh content key
    - opening envelopes, and checking passwords without raising
    - applying the tag policy when content is saved or shown
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        iterations: int = DEFAULT_ITERATIONS,
        protocol_version: str = PROTOCOL_VERSION,
    ):
        self.identity_provider = identity_provider
        self.sessions = SessionManager(
            identity_provider,
            iterations=iterations,
            protocol_version=protocol_version,
        )

    # ------------------------------------------------------------------
    # Core primitives
    # ------------------------------------------------------------------

    async def encrypt_content(self, content: str, password: str) -> Envelope:
        """Encrypt ``content`` under the master key for the current identity."""
        if not password:
            raise PasswordRequiredError("Password required for encrypted content")
        master_key = await self.sessions.get_or_create_master_key(password)
        return encrypt_envelope(content, master_key)

    async def decrypt_content(self, envelope: Union[Envelope, dict], password: str) -> str:
        """
        Decrypt an envelope, given as an Envelope or its JSON wire dict.

        The envelope is decoded before the master key is derived, so a
        structurally broken envelope fails fast with ``CorruptEnvelopeError``.
        A wrong password and tampered bytes both raise ``DecryptionError``.
        """
        if not password:
            raise PasswordRequiredError("Password required to decrypt content")
        try:
            envelope = to_content(envelope)
        except TypeError as e:
            raise CorruptEnvelopeError(str(e)) from e
        if not isinstance(envelope, Envelope):
            raise CorruptEnvelopeError("Content is not an encrypted envelope")
        decoded = decode_envelope(envelope)
        master_key = await self.sessions.get_or_create_master_key(password)
        return decrypt_envelope(decoded, master_key)

    async def validate_password(self, envelope: Union[Envelope, dict], password: str) -> bool:
        """Return True if ``password`` opens ``envelope``. Never raises."""
        try:
            await self.decrypt_content(envelope, password)
        except Exception as e:
            logger.debug("Password validation failed: %s", type(e).__name__)
            return False
        return True

    def clear_session_cache(self) -> None:
        """Forget the master key (identity disconnect, password change)."""
        self.sessions.clear()

    # ------------------------------------------------------------------
    # Policy-aware helpers
    # ------------------------------------------------------------------

    async def prepare_content_for_upload(
        self,
        content: str,
        tags: Iterable[str],
        password: Optional[str] = None,
    ) -> Content:
        """Return what should be stored for ``content`` given its tags."""
        if not should_encrypt(tags):
            return Plain(content)
        if not password:
            raise PasswordRequiredError("Password required for encrypted content")
        return await self.encrypt_content(content, password)

    async def prepare_content_for_display(
        self,
        content: Union[Content, str, dict],
        password: Optional[str] = None,
    ) -> str:
        """Return displayable text for stored content, decrypting if needed."""
        content = to_content(content)
        if isinstance(content, Plain):
            return content.text
        if not password:
            raise PasswordRequiredError("Password required to decrypt content")
        return await self.decrypt_content(content, password)

    # ------------------------------------------------------------------
    # Bulk helpers
    # ------------------------------------------------------------------

    async def encrypt_many(self, contents: Sequence[str], password: str) -> List[Envelope]:
        # one derivation is shared by every call
        return list(await asyncio.gather(*(self.encrypt_content(c, password) for c in contents)))

    async def decrypt_many(self, envelopes: Sequence[Envelope], password: str) -> List[str]:
        return list(await asyncio.gather(*(self.decrypt_content(e, password) for e in envelopes)))
