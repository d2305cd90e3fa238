"""Configuration management for mastoutil.

Loads settings from ~/.config/mastoutil/config.yaml with sensible defaults.
All settings are optional - defaults work out of the box.
"""
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

LOG = logging.getLogger(__name__)

# ============================================================================
# DEFAULTS
# ============================================================================

DEFAULT_CONFIG = {
    # Where the data file lives
    "storage": {
        "app_dir": ".mastoutil",           # Relative to the user's home directory
        "db_name": "masto_acct_data.db",   # File name inside app_dir
        "foreign_keys": False,             # Enforce notifs/follow -> profiles references
        "busy_timeout_ms": 5000,
        "verify_columns": False,           # Also compare column shapes when reconciling
        "open_retries": 2,                 # Extra attempts when the file cannot be opened
        "open_retry_delay": 0.2,           # Seconds between open attempts
    },

    # Profile search defaults
    "search": {
        "limit": 25,
    },
}

# Config file locations (first found wins)
CONFIG_PATHS = [
    Path.home() / ".config/mastoutil/config.yaml",
    Path.home() / ".config/mastoutil/config.yml",
    Path.home() / ".mastoutil.yaml",
    Path("./mastoutil.yaml"),
]


# ============================================================================
# CONFIG LOADING
# ============================================================================

_config_cache: dict | None = None


def _deep_merge(base: dict, override: dict) -> dict:
    """Return base with override layered on top; nested mappings merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = _deep_merge(current, value)
        merged[key] = value
    return merged


def find_config_file() -> Path | None:
    return next((path for path in CONFIG_PATHS if path.exists()), None)


def load_config(reload: bool = False) -> dict:
    """Load configuration with defaults.

    Returns merged config: defaults + user overrides.
    Config is cached after first load.
    """
    global _config_cache

    if _config_cache is not None and not reload:
        return _config_cache

    config = copy.deepcopy(DEFAULT_CONFIG)

    config_file = find_config_file()
    if config_file:
        try:
            user_config = yaml.safe_load(config_file.read_text()) or {}
            if not isinstance(user_config, dict):
                raise ValueError("top level must be a mapping")
            config = _deep_merge(config, user_config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            LOG.warning("Could not load config from %s: %s", config_file, e)

    _config_cache = config
    return config


def get(key: str, default: Any = None) -> Any:
    """Get a config value by dot-separated key.

    Example:
        get("storage.db_name")      # Returns "masto_acct_data.db"
        get("search.limit")         # Returns 25
    """
    value: Any = load_config()
    for part in key.split("."):
        if not isinstance(value, dict) or part not in value:
            return default
        value = value[part]
    return value


# ============================================================================
# CLI HELPER
# ============================================================================

EXAMPLE_CONFIG = """# mastoutil configuration
# All settings are optional - defaults work out of the box.

# Local data store
storage:
  app_dir: .mastoutil            # Directory under your home directory
  db_name: masto_acct_data.db    # SQLite file inside app_dir
  foreign_keys: false            # Enforce notifs/follow -> profiles references
  verify_columns: false          # Rebuild relations whose columns drifted
  open_retries: 2                # Extra attempts when opening the file fails

# Profile search
search:
  limit: 25
"""


def init_config(force: bool = False) -> Path:
    """Create example config file in default location."""
    config_path = CONFIG_PATHS[0]

    if config_path.exists() and not force:
        raise FileExistsError(f"Config already exists: {config_path}")

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(EXAMPLE_CONFIG)
    return config_path


def show_config() -> None:
    """Print the merged configuration as YAML, headed by its source file."""
    config_file = find_config_file()
    print(f"# mastoutil configuration ({config_file or 'defaults only'})")
    print(yaml.safe_dump(load_config(), default_flow_style=False, sort_keys=False), end="")
