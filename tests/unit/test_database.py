"""Unit tests covering ``DatabaseConnection`` and the prompt/tag models."""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from pocketprompt.core.exceptions import CorruptEnvelopeError, StorageError
from pocketprompt.core.models import Envelope, Plain, Prompt
from pocketprompt.database.connection import DatabaseConnection
from pocketprompt.database.models import (
    PromptModel,
    PromptVersionModel,
    TagModel,
    row_to_prompt,
    row_to_version,
    serialize_content,
)
from pocketprompt.database.schema import SCHEMA_VERSION, get_drop_schema

ENVELOPE = Envelope("Y2lwaGVy", "a2V5", "aXY=")


@pytest.fixture()
def temp_db() -> Generator[DatabaseConnection, None, None]:
    """Provide a temporary, initialized ``DatabaseConnection`` instance."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "pocketprompt.db"
        db = DatabaseConnection(db_path)
        db.initialize()
        try:
            yield db
        finally:
            db.close()


@pytest.fixture()
def prompts(temp_db: DatabaseConnection) -> PromptModel:
    return PromptModel(temp_db)


@pytest.fixture()
def tags(temp_db: DatabaseConnection) -> TagModel:
    return TagModel(temp_db)


def test_initialize_is_idempotent(temp_db: DatabaseConnection) -> None:
    """Ensure schema initialization can be invoked multiple times safely."""
    temp_db.initialize()
    assert temp_db.get_version() == SCHEMA_VERSION

    for statement in get_drop_schema():
        temp_db.execute(statement)

    assert temp_db.get_version() == 0


def test_initialize_creates_parent_directory(tmp_path: Path) -> None:
    db = DatabaseConnection(tmp_path / "nested" / "dir" / "p.db")
    db.initialize()
    try:
        assert (tmp_path / "nested" / "dir" / "p.db").exists()
    finally:
        db.close()


def test_transaction_context_commit_and_rollback(temp_db: DatabaseConnection) -> None:
    """Validate commit and rollback behaviour of transaction context manager."""
    with temp_db.get_transaction_context() as cursor:
        cursor.execute("INSERT INTO tags (tag_name) VALUES (?)", ("alpha",))

    assert temp_db.fetch_one("SELECT tag_name FROM tags WHERE tag_name = ?", ("alpha",)) is not None

    with pytest.raises(ValueError):
        with temp_db.get_transaction_context() as cursor:
            cursor.execute("INSERT INTO tags (tag_name) VALUES (?)", ("beta",))
            raise ValueError("force rollback")

    assert temp_db.fetch_one("SELECT tag_name FROM tags WHERE tag_name = ?", ("beta",)) is None


def test_sqlite_errors_become_storage_errors(temp_db: DatabaseConnection) -> None:
    with pytest.raises(StorageError):
        temp_db.execute("INSERT INTO nowhere VALUES (1)")
    with pytest.raises(StorageError):
        temp_db.fetch_all("SELECT * FROM nowhere")


def test_serialize_content() -> None:
    assert serialize_content(Plain("hi")) == ("hi", False)
    text, is_encrypted = serialize_content(ENVELOPE)
    assert is_encrypted is True
    assert Envelope.from_json(text) == ENVELOPE


def test_prompt_model_crud(prompts: PromptModel) -> None:
    prompt = Prompt(owner="addr123", title="Hello", content=Plain("hi"), description="d")
    row = prompts.create(prompt)
    assert row["title"] == "Hello"
    assert row["is_encrypted"] == 0

    prompt.title = "Hello again"
    prompt.content = ENVELOPE
    assert prompts.update(prompt) is True

    restored = row_to_prompt(prompts.get(prompt.prompt_id))
    assert restored.title == "Hello again"
    assert restored.content == ENVELOPE
    assert restored.is_encrypted
    assert restored.created_at == prompt.created_at

    assert prompts.set_archived(prompt.prompt_id, True) is True
    assert prompts.list_by_owner("addr123") == []
    assert len(prompts.list_by_owner("addr123", include_archived=True)) == 1

    assert prompts.delete(prompt.prompt_id) is True
    assert prompts.get(prompt.prompt_id) is None
    assert prompts.delete(prompt.prompt_id) is False
    assert prompts.set_archived(prompt.prompt_id, False) is False


def test_list_by_owner_filters_owner(prompts: PromptModel) -> None:
    prompts.create(Prompt(owner="a", title="one", content=Plain("1")))
    prompts.create(Prompt(owner="b", title="two", content=Plain("2")))
    assert [r["title"] for r in prompts.list_by_owner("a")] == ["one"]


def test_corrupt_stored_envelope_is_reported(temp_db: DatabaseConnection, prompts: PromptModel) -> None:
    prompt = Prompt(owner="a", title="t", content=ENVELOPE)
    prompts.create(prompt)
    temp_db.execute("UPDATE prompts SET content = ? WHERE prompt_id = ?", ("{}", prompt.prompt_id))
    with pytest.raises(CorruptEnvelopeError):
        row_to_prompt(prompts.get(prompt.prompt_id))


def test_tag_model(prompts: PromptModel, tags: TagModel) -> None:
    prompt = Prompt(owner="addr123", title="t", content=Plain("x"))
    prompts.create(prompt)

    tags.set_prompt_tags(prompt.prompt_id, ["zeta", "alpha", "zeta", "public"])
    assert tags.get_prompt_tags(prompt.prompt_id) == ["zeta", "alpha", "public"]

    tags.set_prompt_tags(prompt.prompt_id, ["beta"])
    assert tags.get_prompt_tags(prompt.prompt_id) == ["beta"]
    assert tags.list_for_owner("addr123") == ["beta"]
    assert tags.list_for_owner("someone-else") == []

    assert tags.get_or_create("beta") == tags.get_or_create("beta")


def test_delete_prompt_cascades_to_tag_links(temp_db: DatabaseConnection, prompts: PromptModel, tags: TagModel) -> None:
    prompt = Prompt(owner="addr123", title="t", content=Plain("x"))
    prompts.create(prompt)
    tags.set_prompt_tags(prompt.prompt_id, ["a", "b"])

    prompts.delete(prompt.prompt_id)
    rows = temp_db.fetch_all("SELECT * FROM prompt_tags WHERE prompt_id = ?", (prompt.prompt_id,))
    assert rows == []


def test_prompt_version_model(temp_db: DatabaseConnection, prompts: PromptModel) -> None:
    versions = PromptVersionModel(temp_db)
    prompt = Prompt(owner="addr123", title="Draft", content=ENVELOPE, description="d")
    prompts.create(prompt)

    version_id = versions.create_from_prompt_row(prompts.get(prompt.prompt_id), "first save")

    row = versions.get(prompt.prompt_id, version_id)
    assert row["version_number"] == 1
    assert versions.get("other-prompt", version_id) is None

    version = row_to_version(row)
    assert version.title == "Draft"
    assert version.description == "d"
    assert version.content == ENVELOPE
    assert version.is_encrypted
    assert version.change_description == "first save"
    assert version.created_at == prompt.updated_at

    prompt.version = 2
    prompts.update(prompt)
    versions.create_from_prompt_row(prompts.get(prompt.prompt_id))
    assert [r["version_number"] for r in versions.list_by_prompt(prompt.prompt_id)] == [2, 1]
