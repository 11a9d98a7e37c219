"""ORM-style helpers for prompt and tag rows."""

import uuid
from datetime import datetime

from .connection import DatabaseConnection
from ..core.models import Envelope, Plain, Prompt, PromptVersion


class BaseModel:
    """Base class for DB models."""

    __slots__ = ("db",)

    def __init__(self, db: DatabaseConnection):
        self.db = db


def serialize_content(content):
    """Return (column text, is_encrypted) for a Content value."""
    if isinstance(content, Envelope):
        return content.to_json(), True
    return content.text, False


def _row_content(row):
    if row["is_encrypted"]:
        return Envelope.from_json(row["content"])
    return Plain(row["content"])


def row_to_prompt(row, tags=None):
    """Rehydrate a prompts row into a Prompt."""
    content = _row_content(row)

    return Prompt(
        prompt_id=row["prompt_id"],
        owner=row["owner"],
        title=row["title"],
        description=row.get("description") or "",
        content=content,
        tags=tags or [],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        is_archived=bool(row["is_archived"]),
        version=row.get("version") or 1,
    )


def row_to_version(row):
    """Rehydrate a prompt_versions row into a PromptVersion."""
    return PromptVersion(
        version_id=row["version_id"],
        prompt_id=row["prompt_id"],
        version_number=row["version_number"],
        title=row["title"],
        description=row.get("description") or "",
        content=_row_content(row),
        created_at=datetime.fromisoformat(row["created_at"]),
        change_description=row.get("change_description") or "",
    )


class PromptModel(BaseModel):
    """DB model for prompts."""

    def create(self, prompt):
        """Insert a prompt and return its row."""
        query = """
            INSERT INTO prompts (prompt_id, owner, title, description, content,
                                 is_encrypted, is_archived, version, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        content, is_encrypted = serialize_content(prompt.content)
        params = (
            prompt.prompt_id,
            prompt.owner,
            prompt.title,
            prompt.description,
            content,
            is_encrypted,
            prompt.is_archived,
            prompt.version,
            prompt.created_at.isoformat(),
            prompt.updated_at.isoformat(),
        )
        self.db.execute(query, params)
        return self.get(prompt.prompt_id)

    def get(self, prompt_id):
        """Get prompt row by ID."""
        query = "SELECT * FROM prompts WHERE prompt_id = ?"
        return self.db.fetch_one(query, (prompt_id,))

    def list_by_owner(self, owner, include_archived=False):
        """List an owner's prompts, most recently updated first."""
        query = "SELECT * FROM prompts WHERE owner = ?"
        if not include_archived:
            query += " AND is_archived = 0"
        query += " ORDER BY updated_at DESC"
        return self.db.fetch_all(query, (owner,))

    def update(self, prompt):
        """Write title, description, content, version and timestamps back."""
        query = """
            UPDATE prompts SET
                title = ?,
                description = ?,
                content = ?,
                is_encrypted = ?,
                version = ?,
                updated_at = ?
            WHERE prompt_id = ?
        """
        content, is_encrypted = serialize_content(prompt.content)
        params = (
            prompt.title,
            prompt.description,
            content,
            is_encrypted,
            prompt.version,
            prompt.updated_at.isoformat(),
            prompt.prompt_id,
        )
        return self.db.execute(query, params) > 0

    def set_archived(self, prompt_id, is_archived=True):
        """Archive (soft delete) or restore a prompt."""
        query = "UPDATE prompts SET is_archived = ? WHERE prompt_id = ?"
        return self.db.execute(query, (is_archived, prompt_id)) > 0

    def delete(self, prompt_id):
        """Delete prompt by ID (cascades to its tag links)."""
        query = "DELETE FROM prompts WHERE prompt_id = ?"
        return self.db.execute(query, (prompt_id,)) > 0


class TagModel(BaseModel):
    """DB model for tags and prompt-tag links."""

    def get_or_create(self, tag_name):
        """Return the tag_id for a name, creating the tag if needed."""
        self.db.execute("INSERT OR IGNORE INTO tags (tag_name) VALUES (?)", (tag_name,))
        row = self.db.fetch_one("SELECT tag_id FROM tags WHERE tag_name = ?", (tag_name,))
        return row["tag_id"]

    def set_prompt_tags(self, prompt_id, tags):
        """Replace a prompt's tags, keeping their order."""
        self.db.execute("DELETE FROM prompt_tags WHERE prompt_id = ?", (prompt_id,))
        seen = set()
        for position, tag in enumerate(tags):
            if tag in seen:
                continue
            seen.add(tag)
            tag_id = self.get_or_create(tag)
            self.db.execute(
                "INSERT INTO prompt_tags (prompt_id, tag_id, position) VALUES (?, ?, ?)",
                (prompt_id, tag_id, position),
            )

    def get_prompt_tags(self, prompt_id):
        """Tags of a prompt in their stored order."""
        query = """
            SELECT t.tag_name FROM tags t
            JOIN prompt_tags pt ON pt.tag_id = t.tag_id
            WHERE pt.prompt_id = ?
            ORDER BY pt.position
        """
        return [row["tag_name"] for row in self.db.fetch_all(query, (prompt_id,))]

    def list_for_owner(self, owner):
        """All distinct tags used by an owner's prompts."""
        query = """
            SELECT DISTINCT t.tag_name FROM tags t
            JOIN prompt_tags pt ON pt.tag_id = t.tag_id
            JOIN prompts p ON p.prompt_id = pt.prompt_id
            WHERE p.owner = ?
            ORDER BY t.tag_name
        """
        return [row["tag_name"] for row in self.db.fetch_all(query, (owner,))]


class PromptVersionModel(BaseModel):
    """DB model for prompt version history."""

    def create_from_prompt_row(self, row, change_description=""):
        """Copy a prompts row into prompt_versions and return the new version_id."""
        version_id = str(uuid.uuid4())
        query = """
            INSERT INTO prompt_versions (version_id, prompt_id, version_number, title,
                                         description, content, is_encrypted, created_at,
                                         change_description)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        params = (
            version_id,
            row["prompt_id"],
            row.get("version") or 1,
            row["title"],
            row.get("description"),
            row["content"],
            row["is_encrypted"],
            row["updated_at"],
            change_description,
        )
        self.db.execute(query, params)
        return version_id

    def get(self, prompt_id, version_id):
        query = "SELECT * FROM prompt_versions WHERE version_id = ? AND prompt_id = ?"
        return self.db.fetch_one(query, (version_id, prompt_id))

    def list_by_prompt(self, prompt_id):
        """All saved versions of a prompt, newest first."""
        query = """
            SELECT * FROM prompt_versions
            WHERE prompt_id = ?
            ORDER BY version_number DESC
        """
        return self.db.fetch_all(query, (prompt_id,))
