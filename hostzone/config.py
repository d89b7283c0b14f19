"""Configuration for hostzone.

Two sources:

- Environment overrides (TZ, TZDIR), snapshotted once per process by
  read_env_overrides() and handed to resolvers.
- An optional JSON config file with probe timeouts and a default guest zone.

Use `hostzone config set <key> <value>` to configure, or edit
~/.config/hostzone/config.json directly.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping

from . import paths
from .logging import get_logger

logger = get_logger(__name__)

# Default configuration values
DEFAULT_CONFIG = {
    "zdump_timeout": 5.0,
    "date_timeout": 1.0,
    "default_zone": None,
}


@dataclass(frozen=True)
class EnvOverrides:
    """Timezone-related environment variables, captured once."""

    tz: str | None = None
    tzdir: str | None = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> EnvOverrides:
        return cls(tz=environ.get("TZ") or None, tzdir=environ.get("TZDIR") or None)


@lru_cache(maxsize=1)
def read_env_overrides() -> EnvOverrides:
    """Snapshot TZ and TZDIR from the process environment.

    The snapshot is taken on first call and reused afterwards.
    """
    return EnvOverrides.from_environ(os.environ)


def _load_config() -> dict:
    """Load configuration from config file."""
    if not paths.CONFIG_FILE.exists():
        return {}
    try:
        return json.loads(paths.CONFIG_FILE.read_text())
    except (json.JSONDecodeError, OSError):
        return {}


def get_config() -> dict:
    """Get the full configuration with defaults applied.

    Returns a dict with all config keys, using file values where present
    and defaults otherwise.
    """
    config = _load_config()
    return {**DEFAULT_CONFIG, **config}


def _timeout(config: dict, key: str) -> float:
    """Read a positive timeout, falling back to the default if it does not parse."""
    try:
        value = float(config[key])
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid config value", key=key, value=config[key])
        return DEFAULT_CONFIG[key]
    if value <= 0:
        logger.warning("Ignoring invalid config value", key=key, value=value)
        return DEFAULT_CONFIG[key]
    return value


def get_probe_timeouts() -> tuple[float, float]:
    """Return (zdump_timeout, date_timeout) in seconds."""
    config = get_config()
    return _timeout(config, "zdump_timeout"), _timeout(config, "date_timeout")


def set_config_value(key: str, value: float | str | None) -> None:
    """Set a configuration value and persist to file.

    Args:
        key: Configuration key (e.g., "zdump_timeout", "default_zone")
        value: Value to set
    """
    config = _load_config()
    config[key] = value

    paths.CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    paths.CONFIG_FILE.write_text(json.dumps(config, indent=2) + "\n")
