"""
Base data models for prompt content and metadata
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union
import json
import uuid

from .exceptions import CorruptEnvelopeError


# Wire names of the envelope fields, in serialization order
ENVELOPE_FIELDS = ("encryptedContent", "encryptedKey", "iv", "isEncrypted")


@dataclass(frozen=True, repr=False)
class Envelope:
    """Encrypted content as persisted or transmitted.

    All three binary fields are base64 text. ``encrypted_key`` decodes to the
    12-byte wrap nonce followed by the wrapped content key.
    """

    encrypted_content: str
    encrypted_key: str
    iv: str

    @property
    def is_encrypted(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON wire shape."""
        return {
            "encryptedContent": self.encrypted_content,
            "encryptedKey": self.encrypted_key,
            "iv": self.iv,
            "isEncrypted": True,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> "Envelope":
        """Build an Envelope from its wire shape.

        Raises:
            CorruptEnvelopeError: if a field is missing, not a string, or the
                ``isEncrypted`` marker is not ``true``.
        """
        if not isinstance(data, dict):
            raise CorruptEnvelopeError(f"Envelope must be an object, got {type(data).__name__}")
        if data.get("isEncrypted") is not True:
            raise CorruptEnvelopeError("Envelope is missing the isEncrypted marker")
        values = []
        for name in ENVELOPE_FIELDS[:3]:
            value = data.get(name)
            if not isinstance(value, str) or not value:
                raise CorruptEnvelopeError(f"Envelope field {name!r} is missing or empty")
            values.append(value)
        return cls(*values)

    @classmethod
    def from_json(cls, raw: str) -> "Envelope":
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise CorruptEnvelopeError(f"Envelope is not valid JSON: {e}") from e
        return cls.from_dict(data)

    def __repr__(self):
        return f"Envelope(encrypted_content=<{len(self.encrypted_content)} chars>)"


@dataclass(frozen=True)
class Plain:
    """Unencrypted content."""

    text: str

    @property
    def is_encrypted(self) -> bool:
        return False


# Stored content is always exactly one of these
Content = Union[Plain, Envelope]


class Prompt:
    __slots__ = (
        "prompt_id",
        "owner",
        "title",
        "description",
        "content",
        "tags",
        "created_at",
        "updated_at",
        "is_archived",
        "version",
    )

    def __init__(
        self,
        owner: str,
        title: str,
        content: Content,
        tags: Optional[Iterable[str]] = None,
        description: str = "",
        prompt_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        is_archived: bool = False,
        version: int = 1,
    ):
        """
        Initialize prompt metadata
        """
        self.prompt_id = prompt_id if prompt_id is not None else str(uuid.uuid4())
        self.owner = owner
        self.title = title
        self.description = description
        self.content = content
        self.tags: List[str] = list(tags) if tags is not None else []
        self.created_at = created_at if created_at is not None else datetime.now(timezone.utc)
        self.updated_at = updated_at if updated_at is not None else self.created_at
        self.is_archived = is_archived
        self.version = version

    @property
    def is_encrypted(self) -> bool:
        # what is actually stored, not what the tags ask for
        return isinstance(self.content, Envelope)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert prompt to dict; encrypted content stays in its wire shape
        """
        if isinstance(self.content, Envelope):
            content: Any = self.content.to_dict()
        else:
            content = self.content.text
        return {
            "prompt_id": self.prompt_id,
            "owner": self.owner,
            "title": self.title,
            "description": self.description,
            "content": content,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "is_archived": self.is_archived,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Prompt":
        """
        Create a prompt from dict
        """
        raw = data.get("content", "")
        content: Content = Envelope.from_dict(raw) if isinstance(raw, dict) else Plain(str(raw))

        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        updated_at = data.get("updated_at")
        if isinstance(updated_at, str):
            updated_at = datetime.fromisoformat(updated_at)

        return cls(
            owner=data.get("owner", ""),
            title=data.get("title", ""),
            content=content,
            tags=data.get("tags") or [],
            description=data.get("description") or "",
            prompt_id=data.get("prompt_id"),
            created_at=created_at,
            updated_at=updated_at,
            is_archived=bool(data.get("is_archived", False)),
            version=int(data.get("version", 1)),
        )

    def __repr__(self):
        return f"Prompt(prompt_id={self.prompt_id!r}, title={self.title!r})"

    def __eq__(self, other):
        if not isinstance(other, Prompt):
            return NotImplemented
        return self.prompt_id == other.prompt_id

    def __hash__(self):
        return hash(self.prompt_id)


class PromptVersion:
    """A saved earlier state of a prompt.

    ``content`` is kept exactly as it was stored, so an encrypted version
    stays an Envelope until someone opens it with the password.
    """

    __slots__ = (
        "version_id",
        "prompt_id",
        "version_number",
        "title",
        "description",
        "content",
        "created_at",
        "change_description",
    )

    def __init__(
        self,
        prompt_id: str,
        version_number: int,
        title: str,
        content: Content,
        description: str = "",
        created_at: Optional[datetime] = None,
        change_description: str = "",
        version_id: Optional[str] = None,
    ):
        self.version_id = version_id if version_id is not None else str(uuid.uuid4())
        self.prompt_id = prompt_id
        self.version_number = version_number
        self.title = title
        self.description = description
        self.content = content
        self.created_at = created_at if created_at is not None else datetime.now(timezone.utc)
        self.change_description = change_description

    @property
    def is_encrypted(self) -> bool:
        return isinstance(self.content, Envelope)

    def __repr__(self):
        return f"PromptVersion(prompt_id={self.prompt_id!r}, version_number={self.version_number})"
