"""Unit tests for the CLI AppContext builder."""

import pytest
from unittest.mock import patch

from pocketprompt.core.config import Settings
from pocketprompt.frontend.cli.context import build_context


@pytest.fixture
def settings(tmp_path):
    return Settings(db_path=tmp_path / "cli" / "p.db", identity=None, kdf_iterations=1000)


@pytest.fixture
def stored_identity():
    with patch("pocketprompt.security.identity.load_identity", return_value=None) as load:
        yield load


def test_build_context_initializes_database(settings, stored_identity):
    ctx = build_context(settings)
    try:
        assert settings.db_path.exists()
        assert ctx.store.db is ctx.db
        assert ctx.store.encryption is ctx.encryption
        assert ctx.encryption.sessions._iterations == 1000
        assert ctx.keyring_identity.service == "pocketprompt"
    finally:
        ctx.close()


@pytest.mark.asyncio
async def test_env_identity_takes_precedence(settings, stored_identity):
    stored_identity.return_value = "from-keyring"
    settings.identity = "from-env"
    ctx = build_context(settings)
    try:
        assert await ctx.current_identity() == "from-env"
    finally:
        ctx.close()


@pytest.mark.asyncio
async def test_falls_back_to_keyring_identity(settings, stored_identity):
    stored_identity.return_value = "from-keyring"
    ctx = build_context(settings)
    try:
        assert await ctx.current_identity() == "from-keyring"
        stored_identity.assert_called_with("pocketprompt")
    finally:
        ctx.close()


@pytest.mark.asyncio
async def test_no_identity(settings, stored_identity):
    ctx = build_context(settings)
    try:
        assert await ctx.current_identity() is None
    finally:
        ctx.close()


@pytest.mark.asyncio
async def test_close_clears_session_cache(settings, stored_identity):
    settings.identity = "addr123"
    ctx = build_context(settings)
    await ctx.encryption.encrypt_content("x", "pw")
    assert ctx.encryption.sessions.has_key
    ctx.close()
    assert ctx.encryption.sessions.session is None


def test_build_context_reads_env(tmp_path, monkeypatch, stored_identity):
    monkeypatch.setenv("POCKETPROMPT_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("POCKETPROMPT_KEYRING_SERVICE", "custom")
    ctx = build_context()
    try:
        assert ctx.settings.db_path == tmp_path / "env.db"
        assert ctx.keyring_identity.service == "custom"
    finally:
        ctx.close()
