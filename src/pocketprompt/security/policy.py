"""Encryption policy.

Two independent questions:

- :func:`should_encrypt` is an upload-time decision made from the tags.
- :func:`is_envelope` is a display-time check of what is actually stored.

They can disagree for legacy or imported items, so callers must not derive
one from the other.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping

from ..core.exceptions import CorruptEnvelopeError
from ..core.models import ENVELOPE_FIELDS, Content, Envelope, Plain

PUBLIC_TAG = "public"


def should_encrypt(tags: Iterable[str]) -> bool:
    """True unless one of the tags is exactly "public" (any case)."""
    return not any(tag.lower() == PUBLIC_TAG for tag in tags)


def was_encrypted(tags: Iterable[str]) -> bool:
    # After decryption the content is a plain string, so only the tags tell
    return should_encrypt(tags)


def is_envelope(value: Any) -> bool:
    """Structural check: all envelope fields present and marked encrypted."""
    if isinstance(value, Envelope):
        return True
    if not isinstance(value, Mapping):
        return False
    if value.get("isEncrypted") is not True:
        return False
    return all(
        isinstance(value.get(name), str) and value.get(name)
        for name in ENVELOPE_FIELDS[:3]
    )


def to_content(value: Any) -> Content:
    """Normalize a stored value into ``Plain`` or ``Envelope``."""
    if isinstance(value, (Plain, Envelope)):
        return value
    if isinstance(value, str):
        return Plain(value)
    if isinstance(value, Mapping):
        if not is_envelope(value):
            raise CorruptEnvelopeError("Value is an object but not a complete envelope")
        return Envelope.from_dict(dict(value))
    raise TypeError(f"Unsupported content type: {type(value).__name__}")
