"""
Configuration management for doto stores.

The configuration is stored as a TOML file in the store directory. It
holds the store metadata, the persistence policy and export settings.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import tomli_w

from .export import DEFAULT_TITLE


CONFIG_FILENAME = "doto.toml"
CONFIG_VERSION = 1


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    # Persistence: 0 saves on every change, >0 debounces saves by that many ms
    debounce_ms: int = 0

    # Markdown export
    export_title: str = DEFAULT_TITLE

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def get_default_store_path() -> Path:
    """Store directory: DOTO_STORE_PATH if set, otherwise ~/.doto."""
    env = os.environ.get("DOTO_STORE_PATH")
    if env:
        return Path(env).expanduser().resolve()
    return Path.home() / ".doto"


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Validate version
    version = data.get("store", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    debounce_ms = data.get("persistence", {}).get("debounce_ms", 0)
    if not isinstance(debounce_ms, int) or debounce_ms < 0:
        raise ValueError(f"persistence.debounce_ms must be a non-negative integer, got {debounce_ms!r}")

    title = data.get("export", {}).get("title", DEFAULT_TITLE)
    if not isinstance(title, str):
        raise ValueError(f"export.title must be a string, got {title!r}")

    return StoreConfig(
        path=store_path,
        version=version,
        created=data.get("store", {}).get("created", ""),
        debounce_ms=debounce_ms,
        export_title=title,
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "persistence": {
            "debounce_ms": config.debounce_ms,
        },
        "export": {
            "title": config.export_title,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Optional[Path] = None) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    store_path = store_path if store_path is not None else get_default_store_path()
    if (store_path / CONFIG_FILENAME).exists():
        return load_config(store_path)
    config = StoreConfig(path=store_path)
    save_config(config)
    return config
