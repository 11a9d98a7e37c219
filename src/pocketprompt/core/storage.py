"""
Prompt store: local persistence with encryption applied on the way in and out.

The store decides nothing about cryptography itself. It asks the tag policy
whether content must be encrypted when a prompt is written, and checks what
is actually stored when a prompt is read.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .exceptions import PasswordRequiredError, PromptNotFoundError
from .importer import ImportedPrompt
from .models import Envelope, Prompt, PromptVersion
from .versioning import VersionManager
from ..database.connection import DatabaseConnection
from ..database.models import PromptModel, TagModel, row_to_prompt
from ..security.encryption import EncryptionService
from ..security.policy import should_encrypt

logger = logging.getLogger(__name__)


def _normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    return [tag.strip() for tag in (tags or []) if tag and tag.strip()]


class PromptStore:
    def __init__(self, db: DatabaseConnection, encryption: EncryptionService):
        self.db = db
        self.encryption = encryption
        self.prompt_model = PromptModel(db)
        self.tag_model = TagModel(db)
        self.versions = VersionManager(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_prompt(self, prompt_id: str) -> Prompt:
        """Return a prompt as stored (content may be an Envelope)."""
        row = self.prompt_model.get(prompt_id)
        if row is None:
            raise PromptNotFoundError(f"Prompt {prompt_id} not found")
        return row_to_prompt(row, self.tag_model.get_prompt_tags(prompt_id))

    def list_prompts(self, owner: str, include_archived: bool = False) -> List[Prompt]:
        rows = self.prompt_model.list_by_owner(owner, include_archived=include_archived)
        return [row_to_prompt(row, self.tag_model.get_prompt_tags(row["prompt_id"])) for row in rows]

    def list_tags(self, owner: str) -> List[str]:
        return self.tag_model.list_for_owner(owner)

    async def read_prompt(self, prompt_id: str, password: Optional[str] = None) -> str:
        """Return the displayable content of a prompt."""
        prompt = self.get_prompt(prompt_id)
        return await self.encryption.prepare_content_for_display(prompt.content, password)

    async def read_prompts(
        self, prompts: Iterable[Prompt], password: Optional[str] = None
    ) -> Dict[str, str]:
        """Decrypt many prompts concurrently; keyed by prompt_id."""
        prompts = list(prompts)
        texts = await asyncio.gather(
            *(self.encryption.prepare_content_for_display(p.content, password) for p in prompts)
        )
        return {p.prompt_id: text for p, text in zip(prompts, texts)}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_prompt(
        self,
        owner: str,
        title: str,
        content: str,
        tags: Optional[Iterable[str]] = None,
        description: str = "",
        password: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> Prompt:
        """Store a new prompt, encrypting it unless it is tagged public."""
        tags = _normalize_tags(tags)
        stored = await self.encryption.prepare_content_for_upload(content, tags, password)
        prompt = Prompt(
            owner=owner,
            title=title,
            content=stored,
            tags=tags,
            description=description,
            created_at=created_at,
            updated_at=updated_at,
        )

        with self.db.get_transaction_context():
            self.prompt_model.create(prompt)
            self.tag_model.set_prompt_tags(prompt.prompt_id, tags)

        logger.info("Created prompt %s (encrypted=%s)", prompt.prompt_id, prompt.is_encrypted)
        return prompt

    async def update_prompt(
        self,
        prompt_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        content: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        password: Optional[str] = None,
        change_description: str = "",
    ) -> Prompt:
        """
        Update a prompt. The previous state is kept as a version.

        Content is re-sealed when it changes, or when new tags flip the
        encryption policy. Making an encrypted prompt public needs the
        password to recover the plaintext first.
        """
        prompt = self.get_prompt(prompt_id)
        new_tags = _normalize_tags(tags) if tags is not None else prompt.tags

        policy_changed = should_encrypt(new_tags) != prompt.is_encrypted
        if content is None and policy_changed:
            if isinstance(prompt.content, Envelope) and not password:
                raise PasswordRequiredError("Password required to change encryption of this prompt")
            content = await self.encryption.prepare_content_for_display(prompt.content, password)

        if content is not None:
            prompt.content = await self.encryption.prepare_content_for_upload(content, new_tags, password)
        if title is not None:
            prompt.title = title
        if description is not None:
            prompt.description = description
        prompt.tags = new_tags
        prompt.updated_at = datetime.now(timezone.utc)
        prompt.version += 1

        with self.db.get_transaction_context():
            self.versions.create_version_snapshot(prompt_id, change_description)
            self.prompt_model.update(prompt)
            self.tag_model.set_prompt_tags(prompt_id, new_tags)

        logger.info("Updated prompt %s (encrypted=%s)", prompt_id, prompt.is_encrypted)
        return prompt

    def archive_prompt(self, prompt_id: str) -> None:
        if not self.prompt_model.set_archived(prompt_id, True):
            raise PromptNotFoundError(f"Prompt {prompt_id} not found")

    def restore_prompt(self, prompt_id: str) -> None:
        if not self.prompt_model.set_archived(prompt_id, False):
            raise PromptNotFoundError(f"Prompt {prompt_id} not found")

    def delete_prompt(self, prompt_id: str) -> None:
        if not self.prompt_model.delete(prompt_id):
            raise PromptNotFoundError(f"Prompt {prompt_id} not found")
        logger.info("Deleted prompt %s", prompt_id)

    # ------------------------------------------------------------------
    # Version history
    # ------------------------------------------------------------------

    def list_versions(self, prompt_id: str) -> List[PromptVersion]:
        """Earlier versions of a prompt, newest first (content still sealed)."""
        self.get_prompt(prompt_id)
        return self.versions.list_versions(prompt_id)

    async def read_version(
        self, prompt_id: str, version_id: str, password: Optional[str] = None
    ) -> str:
        """Return the displayable content of one saved version."""
        version = self.versions.get_version(prompt_id, version_id)
        return await self.encryption.prepare_content_for_display(version.content, password)

    def restore_version(self, prompt_id: str, version_id: str) -> Prompt:
        """
        Bring back a saved version. No password is needed: the stored
        content is copied as-is, so an encrypted version stays encrypted.
        """
        with self.db.get_transaction_context():
            if not self.versions.restore_version(prompt_id, version_id):
                raise PromptNotFoundError(f"Version {version_id} of prompt {prompt_id} not found")

        logger.info("Restored prompt %s to version %s", prompt_id, version_id)
        return self.get_prompt(prompt_id)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    async def import_prompts(
        self,
        owner: str,
        imported: Iterable[ImportedPrompt],
        password: Optional[str] = None,
    ) -> List[Prompt]:
        """Store parsed markdown prompts; the tag policy decides what gets encrypted."""
        created = []
        for item in imported:
            prompt = await self.create_prompt(
                owner,
                item.title,
                item.content,
                tags=item.tags,
                description=item.description,
                password=password,
                created_at=item.created_at,
                updated_at=item.updated_at,
            )
            if item.is_archived:
                self.archive_prompt(prompt.prompt_id)
                prompt.is_archived = True
            created.append(prompt)

        logger.info("Imported %d prompts for %s", len(created), owner)
        return created
