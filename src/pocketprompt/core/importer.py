"""
Markdown prompt import.

A prompt file is markdown with optional YAML frontmatter::

    ---
    title: Code review
    tags: [work, review]
    description: Ask for a careful review
    archived: false
    created_at: 2024-03-01T10:00:00Z
    ---
    # Code review

    Review the following diff...

Parsing only produces :class:`ImportedPrompt` values; storing them (and
encrypting the private ones) is the prompt store's job.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .exceptions import PromptImportError

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<meta>.*?)^(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
_HEADING_RE = re.compile(r"^#+\s+(.+)$", re.MULTILINE)


@dataclass
class ImportedPrompt:
    title: str
    content: str
    description: str = ""
    tags: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_archived: bool = False
    source: Optional[str] = None


@dataclass
class FileImportResult:
    file_name: str
    prompt: Optional[ImportedPrompt] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.prompt is not None


@dataclass
class BatchImportResult:
    results: List[FileImportResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def prompts(self) -> List[ImportedPrompt]:
        return [r.prompt for r in self.results if r.prompt is not None]


def split_frontmatter(text: str) -> Tuple[Dict[str, Any], str]:
    """Return (frontmatter mapping, body). Files without frontmatter give {}."""
    text = text.lstrip("\ufeff")
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return {}, text

    try:
        data = yaml.safe_load(match.group("meta"))
    except yaml.YAMLError as e:
        raise PromptImportError(f"Invalid frontmatter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PromptImportError("Frontmatter must be a mapping")
    return data, text[match.end():]


def _parse_timestamp(value: Any) -> Optional[datetime]:
    # unparseable values are dropped, the store then uses the import time
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _first_heading(body: str) -> Optional[str]:
    match = _HEADING_RE.search(body)
    return match.group(1).strip() if match else None


def parse_markdown_prompt(text: str, file_path: Optional[Union[str, Path]] = None) -> ImportedPrompt:
    """
    Parse one markdown prompt.

    Title comes from ``title``, then ``name``, then the first heading, then
    the file name, then "Untitled". Missing fields get defaults.

    Raises:
        PromptImportError: if the file is empty or the frontmatter is invalid
    """
    data, body = split_frontmatter(text)
    body = body.strip()
    if not data and not body:
        raise PromptImportError("Empty file: no frontmatter and no content")

    title = data.get("title") or data.get("name") or _first_heading(body)
    if not title and file_path is not None:
        title = Path(file_path).stem
    title = str(title or "Untitled")

    raw_tags = data.get("tags")
    tags = [str(tag) for tag in raw_tags if tag is not None] if isinstance(raw_tags, list) else []

    return ImportedPrompt(
        title=title,
        content=body,
        description=str(data.get("description") or ""),
        tags=tags,
        created_at=_parse_timestamp(data.get("created_at")),
        updated_at=_parse_timestamp(data.get("updated_at")),
        is_archived=data.get("archived") is True,
        source=str(file_path) if file_path is not None else None,
    )


def import_markdown_file(path: Union[str, Path]) -> ImportedPrompt:
    """Read and parse a single ``.md`` file."""
    path = Path(path).expanduser()
    if path.suffix.lower() != MARKDOWN_SUFFIX:
        raise PromptImportError(f"{path.name}: only .md files are supported")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PromptImportError(f"{path.name}: could not read file: {e}") from e
    return parse_markdown_prompt(text, path)


def import_markdown_directory(directory: Union[str, Path]) -> BatchImportResult:
    """Parse every ``.md`` file directly inside ``directory``; failures are collected, not raised."""
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        raise PromptImportError(f"{directory} is not a directory")

    batch = BatchImportResult()
    files = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == MARKDOWN_SUFFIX)
    for path in files:
        try:
            batch.results.append(FileImportResult(path.name, prompt=import_markdown_file(path)))
        except PromptImportError as e:
            logger.info("Skipping %s: %s", path.name, e)
            batch.results.append(FileImportResult(path.name, error=str(e)))

    logger.info("Parsed %d of %d markdown files in %s", batch.successful, batch.total, directory)
    return batch
