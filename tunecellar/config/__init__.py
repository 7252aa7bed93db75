"""
Configuration management for Tunecellar.

This module loads server settings (storage layout, database pools, ingestion
concurrency, web binding and the registered users) from a TOML file.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent

DEFAULT_CONFIG_FILE = CONFIG_DIR / "tunecellar.toml"


@dataclass(frozen=True)
class StorageConfig:
    """On-disk layout: system DB, staging area and per-user storage."""

    data_dir: Path = Path("devdir")

    @property
    def user_db_path(self) -> Path:
        return self.data_dir / "user.db"

    @property
    def staging_dir(self) -> Path:
        """Uploaded files wait here, named by their pending upload id."""
        return self.data_dir / "temp"

    @property
    def users_dir(self) -> Path:
        """Per-user music DBs and ingested files live under `<users_dir>/<user>/`."""
        return self.data_dir / "u"


@dataclass(frozen=True)
class DatabaseConfig:
    pool_size: int = 4
    busy_timeout: float = 5.0


@dataclass(frozen=True)
class IngestConfig:
    max_concurrency: int = 4


@dataclass(frozen=True)
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass(frozen=True)
class Settings:
    """Loaded server settings."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    web: WebConfig = field(default_factory=WebConfig)
    users: tuple[str, ...] = ("demo",)
    default_user: str = "demo"

    def __post_init__(self) -> None:
        if self.database.pool_size < 1:
            raise ValueError("database.pool_size must be at least 1")
        if self.ingest.max_concurrency < 1:
            raise ValueError("ingest.max_concurrency must be at least 1")
        if self.default_user not in self.users:
            raise ValueError(f"default user {self.default_user!r} is not in users.names")

    def with_overrides(
        self,
        *,
        data_dir: Path | None = None,
        host: str | None = None,
        port: int | None = None,
    ) -> Settings:
        """Return a copy with CLI overrides applied."""
        storage = self.storage if data_dir is None else replace(self.storage, data_dir=data_dir)
        web = replace(
            self.web,
            host=self.web.host if host is None else host,
            port=self.web.port if port is None else port,
        )
        return replace(self, storage=storage, web=web)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ValueError(f"[{name}] must be a table")
    return value


def parse_settings(data: dict[str, Any]) -> Settings:
    """Build `Settings` from already-parsed TOML data."""
    storage = _section(data, "storage")
    database = _section(data, "database")
    ingest = _section(data, "ingest")
    web = _section(data, "web")
    users = _section(data, "users")

    names = tuple(str(n) for n in users.get("names", ["demo"]))
    default_user = str(users.get("default", names[0] if names else "demo"))

    return Settings(
        storage=StorageConfig(data_dir=Path(storage.get("data_dir", "devdir"))),
        database=DatabaseConfig(
            pool_size=int(database.get("pool_size", 4)),
            busy_timeout=float(database.get("busy_timeout", 5.0)),
        ),
        ingest=IngestConfig(max_concurrency=int(ingest.get("max_concurrency", 4))),
        web=WebConfig(
            host=str(web.get("host", "0.0.0.0")),
            port=int(web.get("port", 8080)),
        ),
        users=names,
        default_user=default_user,
    )


def load_settings(config_path: Path | None = None) -> Settings:
    """
    Load settings from a TOML file.

    Args:
        config_path: Path to the TOML file. If None, uses the bundled default.

    Returns:
        Loaded Settings instance.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    logger.debug("Loading settings from %s", config_path)

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    return parse_settings(data)


# Global singleton instance (lazy loaded)
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings (lazy loaded singleton)."""
    global _settings

    if _settings is None:
        _settings = load_settings()

    return _settings


def reload_settings(config_path: Path | None = None) -> Settings:
    """Force reload of the global settings."""
    global _settings
    _settings = load_settings(config_path)
    return _settings
