"""Application configuration management."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from napclock.models import AppConfig

log = logging.getLogger(__name__)

_CONFIG_DIR = Path.home() / ".config" / "napclock"
_DB_DIR = Path.home() / ".local" / "share" / "napclock"

_CONFIG_FILE = _CONFIG_DIR / "config.json"


def load_config() -> AppConfig:
    """Load config from disk, returning defaults if none exists."""
    if _CONFIG_FILE.exists():
        try:
            data = json.loads(_CONFIG_FILE.read_text())
            return AppConfig(**data)
        except (json.JSONDecodeError, TypeError, ValidationError) as error:
            log.warning("Ignoring unreadable config %s: %s", _CONFIG_FILE, error)
    return AppConfig()


def save_config(config: AppConfig) -> Path:
    """Write config to disk. Returns the config file path."""
    _CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    _CONFIG_FILE.write_text(config.model_dump_json(indent=2))
    return _CONFIG_FILE


def update_config(**changes: Any) -> AppConfig:
    """Apply ``changes`` (None values are skipped), validate, save and return.

    Raises ``ValidationError`` if the result is not a valid config.
    """
    current = load_config()
    data = current.model_dump()
    data.update({key: value for key, value in changes.items() if value is not None})
    config = AppConfig(**data)
    save_config(config)
    return config


def reset_config() -> AppConfig:
    """Restore default timer settings, keeping a custom database location."""
    current = load_config()
    config = AppConfig(db_path=current.db_path)
    save_config(config)
    return config


def get_db_path() -> Path:
    """Resolve the database path from config (or default)."""
    config = load_config()
    if config.db_path is not None:
        p = Path(config.db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    # Default
    _DB_DIR.mkdir(parents=True, exist_ok=True)
    return _DB_DIR / "napclock.db"


def set_db_path(path: str) -> AppConfig:
    """Set a custom database path and save config."""
    resolved = Path(path).expanduser().resolve()
    # Ensure it ends with a filename
    if resolved.is_dir():
        resolved = resolved / "napclock.db"
    resolved.parent.mkdir(parents=True, exist_ok=True)
    config = load_config()
    config.db_path = str(resolved)
    save_config(config)
    return config
