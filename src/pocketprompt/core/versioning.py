"""
Versioning Service
Handles snapshotting prompts and restoring earlier versions.

Snapshots copy the stored row as-is: an encrypted prompt's history is made
of sealed envelopes and is never decrypted here.
"""

from datetime import datetime, timezone
from typing import List

from .exceptions import PromptNotFoundError
from .models import PromptVersion
from ..database.models import PromptModel, PromptVersionModel, row_to_version


class VersionManager:
    def __init__(self, db_connection):
        """Initializes the version manager."""

        self.db = db_connection
        self.prompt_model = PromptModel(self.db)
        self.version_model = PromptVersionModel(self.db)

    def create_version_snapshot(self, prompt_id: str, change_description: str = "") -> bool:
        """Archive the current state of ``prompt_id`` into prompt_versions."""
        row = self.prompt_model.get(prompt_id)
        if not row:
            return False

        self.version_model.create_from_prompt_row(row, change_description)
        return True

    def list_versions(self, prompt_id: str) -> List[PromptVersion]:
        """Return all saved versions of a prompt, newest first."""
        return [row_to_version(row) for row in self.version_model.list_by_prompt(prompt_id)]

    def get_version(self, prompt_id: str, version_id: str) -> PromptVersion:
        row = self.version_model.get(prompt_id, version_id)
        if not row:
            raise PromptNotFoundError(f"Version {version_id} of prompt {prompt_id} not found")
        return row_to_version(row)

    def restore_version(self, prompt_id: str, version_id: str) -> bool:
        """
        Make a saved version the current content of the prompt.

        The current state is snapshotted first, so a restore can itself be
        undone. Title, description and stored content come from the chosen
        version; tags are left alone. The version counter goes up by one.
        """
        version_row = self.version_model.get(prompt_id, version_id)
        if not version_row:
            return False

        current_row = self.prompt_model.get(prompt_id)
        if not current_row:
            return False

        self.version_model.create_from_prompt_row(
            current_row,
            f"Restore version {version_row['version_number']}",
        )

        self.db.execute(
            """
            UPDATE prompts
            SET
                title = ?,
                description = ?,
                content = ?,
                is_encrypted = ?,
                version = ?,
                updated_at = ?
            WHERE prompt_id = ?
            """,
            (
                version_row["title"],
                version_row["description"],
                version_row["content"],
                version_row["is_encrypted"],
                (current_row.get("version") or 1) + 1,
                datetime.now(timezone.utc).isoformat(),
                prompt_id,
            ),
        )
        return True
