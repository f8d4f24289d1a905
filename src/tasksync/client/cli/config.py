"""Configuration utilities for the tasksync CLI.

This module provides shared configuration functions used across CLI commands.
Settings saved with ``tasksync configure`` are the defaults; ``TASKSYNC_*``
environment variables override them.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from tasksync.client.state import LocalDatabase
from tasksync.core.config import SyncConfig


def get_config_dir() -> Path:
    """Get the configuration directory for tasksync.

    Returns:
        Path from TASKSYNC_HOME, or ~/.tasksync.
    """
    home = os.environ.get("TASKSYNC_HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".tasksync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_database_path() -> Path:
    """Get the path to the local task database."""
    return get_config_dir() / "tasks.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_sync_config() -> SyncConfig:
    """Build the sync configuration from the config file and environment.

    Raises:
        ValueError: If a setting is invalid.
    """
    return SyncConfig.from_env(defaults=load_config())


def open_database() -> LocalDatabase:
    """Open the local task database."""
    return LocalDatabase(get_database_path())
