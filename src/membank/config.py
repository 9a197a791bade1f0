"""Configuration loading from environment variables and membank.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_DB_PATH = Path("db") / "memory-bank.db"
_CONFIG_FILENAME = "membank.toml"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class StorageConfig:
    """Where the memory bank lives on disk."""

    db_path: Path = field(default_factory=lambda: Path.cwd() / _DEFAULT_DB_PATH)
    echo: bool = False


@dataclass
class MembankConfig:
    """Top-level membank configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = "INFO"


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def load_config(config_path: Path | None = None) -> MembankConfig:
    """Load configuration from environment variables and optional membank.toml.

    Priority: environment variables > membank.toml > defaults.
    Relative db paths are resolved against the current directory.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.membank/
        for candidate in [
            Path.cwd() / _CONFIG_FILENAME,
            Path.home() / ".membank" / _CONFIG_FILENAME,
        ]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    storage_data = file_data.get("storage", {})

    db_path = Path(
        os.getenv("MEMBANK_DB_PATH", storage_data.get("db_path", str(_DEFAULT_DB_PATH)))
    ).expanduser()
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path

    return MembankConfig(
        storage=StorageConfig(
            db_path=db_path,
            echo=_as_bool(os.getenv("MEMBANK_SQL_ECHO", storage_data.get("echo", False))),
        ),
        log_level=os.getenv("MEMBANK_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
