"""Unit tests for the PromptStore (SQLite + tag-driven encryption)."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest
from unittest.mock import patch

from pocketprompt.core.exceptions import DecryptionError, PasswordRequiredError, PromptNotFoundError
from pocketprompt.core.importer import ImportedPrompt
from pocketprompt.core.models import Envelope, Plain
from pocketprompt.core.storage import PromptStore
from pocketprompt.database.connection import DatabaseConnection
from pocketprompt.security import session as session_mod
from pocketprompt.security.encryption import EncryptionService
from pocketprompt.security.identity import StaticIdentityProvider

LOW_ITERATIONS = 1000
OWNER = "addr123"


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def temp_db():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = DatabaseConnection(Path(tmpdir) / "pocketprompt.db")
        db.initialize()
        try:
            yield db
        finally:
            db.close()


@pytest.fixture
def store(temp_db):
    encryption = EncryptionService(StaticIdentityProvider(OWNER), iterations=LOW_ITERATIONS)
    return PromptStore(temp_db, encryption)


@pytest.fixture
def counting_kdf():
    real = session_mod.derive_master_key
    with patch("pocketprompt.security.session.derive_master_key", side_effect=real) as mock:
        yield mock


# ==============================================================================
# Tests: create / read
# ==============================================================================

@pytest.mark.asyncio
async def test_public_prompt_stored_plain(store, counting_kdf):
    prompt = await store.create_prompt(OWNER, "Greeting", "hello", tags=["Public", " misc "])

    stored = store.get_prompt(prompt.prompt_id)
    assert stored.content == Plain("hello")
    assert stored.tags == ["Public", "misc"]
    assert stored.version == 1
    assert await store.read_prompt(prompt.prompt_id) == "hello"
    counting_kdf.assert_not_called()


@pytest.mark.asyncio
async def test_private_prompt_stored_encrypted(store):
    prompt = await store.create_prompt(OWNER, "Secret", "hidden", tags=["work"], password="pw")

    stored = store.get_prompt(prompt.prompt_id)
    assert isinstance(stored.content, Envelope)
    assert stored.is_encrypted
    assert "hidden" not in stored.content.to_json()
    assert await store.read_prompt(prompt.prompt_id, "pw") == "hidden"


@pytest.mark.asyncio
async def test_private_prompt_needs_password(store):
    with pytest.raises(PasswordRequiredError):
        await store.create_prompt(OWNER, "Secret", "hidden")
    assert store.list_prompts(OWNER) == []


@pytest.mark.asyncio
async def test_create_keeps_given_timestamps(store):
    created = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    prompt = await store.create_prompt(OWNER, "Old", "x", tags=["public"], created_at=created)

    stored = store.get_prompt(prompt.prompt_id)
    assert stored.created_at == created
    assert stored.updated_at == created


@pytest.mark.asyncio
async def test_read_encrypted_with_wrong_password(store):
    prompt = await store.create_prompt(OWNER, "Secret", "hidden", password="pw")
    with pytest.raises(DecryptionError):
        await store.read_prompt(prompt.prompt_id, "nope")
    with pytest.raises(PasswordRequiredError):
        await store.read_prompt(prompt.prompt_id)


@pytest.mark.asyncio
async def test_read_prompts_derives_once(store, counting_kdf):
    for i in range(5):
        await store.create_prompt(OWNER, f"p{i}", f"text {i}", password="pw")
    store.encryption.clear_session_cache()

    texts = await store.read_prompts(store.list_prompts(OWNER), "pw")

    assert sorted(texts.values()) == [f"text {i}" for i in range(5)]
    # once while creating, once more after the cache was cleared
    assert counting_kdf.call_count == 2


def test_get_missing_prompt(store):
    with pytest.raises(PromptNotFoundError):
        store.get_prompt("missing")


@pytest.mark.asyncio
async def test_list_tags(store):
    await store.create_prompt(OWNER, "a", "x", tags=["public", "b"])
    await store.create_prompt("other", "c", "y", tags=["public", "zzz"])
    assert store.list_tags(OWNER) == ["b", "public"]


# ==============================================================================
# Tests: update
# ==============================================================================

@pytest.mark.asyncio
async def test_update_metadata_only_keeps_ciphertext(store):
    prompt = await store.create_prompt(OWNER, "Secret", "hidden", password="pw")
    before = store.get_prompt(prompt.prompt_id).content

    await store.update_prompt(prompt.prompt_id, title="Renamed", description="new")

    after = store.get_prompt(prompt.prompt_id)
    assert after.title == "Renamed"
    assert after.description == "new"
    assert after.content == before


@pytest.mark.asyncio
async def test_update_content_reseals(store):
    prompt = await store.create_prompt(OWNER, "Secret", "hidden", password="pw")
    before = store.get_prompt(prompt.prompt_id).content

    await store.update_prompt(prompt.prompt_id, content="changed", password="pw")

    after = store.get_prompt(prompt.prompt_id)
    assert after.content != before
    assert await store.read_prompt(prompt.prompt_id, "pw") == "changed"


@pytest.mark.asyncio
async def test_making_private_prompt_public_decrypts(store):
    prompt = await store.create_prompt(OWNER, "Secret", "hidden", password="pw")

    with pytest.raises(PasswordRequiredError):
        await store.update_prompt(prompt.prompt_id, tags=["public"])

    await store.update_prompt(prompt.prompt_id, tags=["public"], password="pw")
    stored = store.get_prompt(prompt.prompt_id)
    assert stored.content == Plain("hidden")
    assert stored.tags == ["public"]


@pytest.mark.asyncio
async def test_making_public_prompt_private_encrypts(store):
    prompt = await store.create_prompt(OWNER, "Open", "visible", tags=["public"])

    with pytest.raises(PasswordRequiredError):
        await store.update_prompt(prompt.prompt_id, tags=["work"])

    await store.update_prompt(prompt.prompt_id, tags=["work"], password="pw")
    stored = store.get_prompt(prompt.prompt_id)
    assert isinstance(stored.content, Envelope)
    assert await store.read_prompt(prompt.prompt_id, "pw") == "visible"


@pytest.mark.asyncio
async def test_update_missing_prompt(store):
    with pytest.raises(PromptNotFoundError):
        await store.update_prompt("missing", title="x")


# ==============================================================================
# Tests: version history
# ==============================================================================

@pytest.mark.asyncio
async def test_update_keeps_previous_version(store):
    prompt = await store.create_prompt(OWNER, "Draft", "v1 text", tags=["public"])
    await store.update_prompt(prompt.prompt_id, content="v2 text", change_description="reword")
    await store.update_prompt(prompt.prompt_id, title="Final", content="v3 text")

    current = store.get_prompt(prompt.prompt_id)
    assert current.version == 3

    versions = store.list_versions(prompt.prompt_id)
    assert [v.version_number for v in versions] == [2, 1]
    assert [v.content for v in versions] == [Plain("v2 text"), Plain("v1 text")]
    assert versions[0].title == "Draft"
    assert versions[1].change_description == "reword"


@pytest.mark.asyncio
async def test_encrypted_history_stays_sealed(store):
    prompt = await store.create_prompt(OWNER, "Secret", "first", password="pw")
    sealed = store.get_prompt(prompt.prompt_id).content
    await store.update_prompt(prompt.prompt_id, content="second", password="pw")

    (old,) = store.list_versions(prompt.prompt_id)
    assert old.is_encrypted
    assert old.content == sealed

    assert await store.read_version(prompt.prompt_id, old.version_id, "pw") == "first"
    with pytest.raises(PasswordRequiredError):
        await store.read_version(prompt.prompt_id, old.version_id)


@pytest.mark.asyncio
async def test_restore_version_without_password(store, counting_kdf):
    prompt = await store.create_prompt(OWNER, "Secret", "first", password="pw")
    await store.update_prompt(prompt.prompt_id, title="Changed", content="second", password="pw")
    (old,) = store.list_versions(prompt.prompt_id)
    calls = counting_kdf.call_count

    restored = store.restore_version(prompt.prompt_id, old.version_id)

    assert counting_kdf.call_count == calls
    assert restored.title == "Secret"
    assert restored.version == 3
    assert restored.content == old.content
    assert await store.read_prompt(prompt.prompt_id, "pw") == "first"

    # the state that was replaced is itself kept
    history = store.list_versions(prompt.prompt_id)
    assert [v.version_number for v in history] == [2, 1]
    assert history[0].title == "Changed"
    assert history[0].change_description == "Restore version 1"


@pytest.mark.asyncio
async def test_restore_unknown_version(store):
    prompt = await store.create_prompt(OWNER, "Open", "x", tags=["public"])
    with pytest.raises(PromptNotFoundError):
        store.restore_version(prompt.prompt_id, "missing")
    assert store.get_prompt(prompt.prompt_id).version == 1


def test_list_versions_of_missing_prompt(store):
    with pytest.raises(PromptNotFoundError):
        store.list_versions("missing")


@pytest.mark.asyncio
async def test_delete_removes_history(store, temp_db):
    prompt = await store.create_prompt(OWNER, "Open", "x", tags=["public"])
    await store.update_prompt(prompt.prompt_id, content="y")
    store.delete_prompt(prompt.prompt_id)
    rows = temp_db.fetch_all("SELECT * FROM prompt_versions WHERE prompt_id = ?", (prompt.prompt_id,))
    assert rows == []


# ==============================================================================
# Tests: import
# ==============================================================================

@pytest.mark.asyncio
async def test_import_prompts_applies_tag_policy(store):
    created = datetime(2024, 1, 2, tzinfo=timezone.utc)
    imported = [
        ImportedPrompt(title="Open", content="visible", tags=["public"], created_at=created),
        ImportedPrompt(title="Private", content="hidden", tags=["work"], description="d"),
        ImportedPrompt(title="Old", content="gone", tags=["public"], is_archived=True),
    ]

    prompts = await store.import_prompts(OWNER, imported, password="pw")

    assert [p.title for p in prompts] == ["Open", "Private", "Old"]
    open_, private, old = (store.get_prompt(p.prompt_id) for p in prompts)
    assert open_.content == Plain("visible")
    assert open_.created_at == created
    assert private.is_encrypted
    assert private.description == "d"
    assert await store.read_prompt(private.prompt_id, "pw") == "hidden"
    assert old.is_archived


@pytest.mark.asyncio
async def test_import_private_prompt_without_password(store):
    with pytest.raises(PasswordRequiredError):
        await store.import_prompts(OWNER, [ImportedPrompt(title="Private", content="hidden")])


# ==============================================================================
# Tests: archive / restore / delete
# ==============================================================================

@pytest.mark.asyncio
async def test_archive_restore_delete(store):
    prompt = await store.create_prompt(OWNER, "Open", "visible", tags=["public"])

    store.archive_prompt(prompt.prompt_id)
    assert store.list_prompts(OWNER) == []
    assert store.list_prompts(OWNER, include_archived=True)[0].is_archived

    store.restore_prompt(prompt.prompt_id)
    assert [p.prompt_id for p in store.list_prompts(OWNER)] == [prompt.prompt_id]

    store.delete_prompt(prompt.prompt_id)
    with pytest.raises(PromptNotFoundError):
        store.get_prompt(prompt.prompt_id)


@pytest.mark.parametrize("method", ["archive_prompt", "restore_prompt", "delete_prompt"])
def test_missing_prompt_operations(store, method):
    with pytest.raises(PromptNotFoundError):
        getattr(store, method)("missing")
