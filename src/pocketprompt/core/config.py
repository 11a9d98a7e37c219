"""Runtime settings, read from ``POCKETPROMPT_*`` environment variables."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import logging
import os

from .exceptions import InitializationError
from ..security.kdf import DEFAULT_ITERATIONS, PROTOCOL_VERSION

ENV_PREFIX = "POCKETPROMPT_"


def _default_db_path() -> Path:
    return Path.home() / ".pocketprompt" / "pocketprompt.db"


@dataclass
class Settings:
    """Container for everything the CLI and the store need to start up."""

    db_path: Path = field(default_factory=_default_db_path)
    identity: Optional[str] = None
    keyring_service: str = "pocketprompt"
    kdf_iterations: int = DEFAULT_ITERATIONS
    protocol_version: str = PROTOCOL_VERSION
    password: Optional[str] = None
    log_level: int = logging.WARNING

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from the environment.

        Unset variables keep their defaults. Raises ``InitializationError``
        for values that cannot be parsed.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value if value else None

        settings = cls()

        db_path = get("DB_PATH")
        if db_path:
            settings.db_path = Path(db_path).expanduser()

        settings.identity = get("IDENTITY")
        settings.password = get("PASSWORD")

        service = get("KEYRING_SERVICE")
        if service:
            settings.keyring_service = service

        iterations = get("KDF_ITERATIONS")
        if iterations:
            try:
                settings.kdf_iterations = int(iterations)
            except ValueError as e:
                raise InitializationError(
                    f"{ENV_PREFIX}KDF_ITERATIONS must be an integer, got {iterations!r}"
                ) from e
            if settings.kdf_iterations < 1:
                raise InitializationError(f"{ENV_PREFIX}KDF_ITERATIONS must be positive")

        protocol = get("PROTOCOL_VERSION")
        if protocol:
            settings.protocol_version = protocol

        level = get("LOG_LEVEL")
        if level:
            resolved = logging.getLevelName(level.upper())
            if not isinstance(resolved, int):
                raise InitializationError(f"Unknown log level {level!r}")
            settings.log_level = resolved

        return settings
