"""
Configuration management for PlayerHUD.

Settings are loaded from TOML. The packaged ``defaults.toml`` is always read
first; an optional user file is layered on top of it, key by key within each
section.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from playerhud.core import PlayerHudError
from playerhud.core.artwork import default_cache_path

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent

DEFAULTS_FILE = CONFIG_DIR / "defaults.toml"


class ConfigError(PlayerHudError):
    """Raised when a configuration file is missing or invalid."""


@dataclass
class HudConfig:
    """Loaded PlayerHUD configuration."""

    service_prefix: str = "org.mpris.MediaPlayer2."
    poll_interval: float = 1.0
    discovery_timeout: float = 2.0
    fetch_timeout: float = 1.5
    artwork_timeout: float = 2.0
    artwork_max_bytes: int = 10 * 1024 * 1024
    cache_path: Path = field(default_factory=default_cache_path)
    cleanup_on_exit: bool = False
    web_enabled: bool = True
    web_host: str = "127.0.0.1"
    web_port: int = 9550

    @property
    def cycle_deadline(self) -> float:
        """Hard limit for one sync cycle: the sum of all call timeouts."""
        return self.discovery_timeout + self.fetch_timeout + self.artwork_timeout

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigError: If any value is out of range.
        """
        if not self.service_prefix:
            raise ConfigError("sync.service_prefix must not be empty")

        for name in ("poll_interval", "discovery_timeout", "fetch_timeout", "artwork_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")

        if self.artwork_max_bytes <= 0:
            raise ConfigError(f"artwork.max_bytes must be positive, got {self.artwork_max_bytes}")

        if not 0 < self.web_port < 65536:
            raise ConfigError(f"web.port out of range: {self.web_port}")


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge two parsed TOML documents section by section."""
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in base.items()}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def _expand_cache_path(raw: str) -> Path:
    return Path(os.path.expanduser(raw.replace("{uid}", str(os.getuid()))))


def _invalid(key: str, kind: str, value: Any) -> ConfigError:
    return ConfigError(f"Invalid configuration value: {key} must be {kind}, got {value!r}")


def _get_section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise _invalid(name, "a table", section)
    return section


def _get_bool(section: dict[str, Any], name: str, key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise _invalid(f"{name}.{key}", "a boolean", value)
    return value


def _get_int(section: dict[str, Any], name: str, key: str, default: int) -> int:
    value = section.get(key, default)
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise _invalid(f"{name}.{key}", "an integer", value)
    return value


def _get_float(section: dict[str, Any], name: str, key: str, default: float) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _invalid(f"{name}.{key}", "a number", value)
    return float(value)


def _get_str(section: dict[str, Any], name: str, key: str, default: str) -> str:
    value = section.get(key, default)
    if not isinstance(value, str):
        raise _invalid(f"{name}.{key}", "a string", value)
    return value


def _build_config(data: dict[str, Any]) -> HudConfig:
    sync = _get_section(data, "sync")
    artwork = _get_section(data, "artwork")
    web = _get_section(data, "web")

    defaults = HudConfig()

    raw_cache_path = artwork.get("cache_path")
    if raw_cache_path is not None and not isinstance(raw_cache_path, str):
        raise _invalid("artwork.cache_path", "a string", raw_cache_path)

    config = HudConfig(
        service_prefix=_get_str(sync, "sync", "service_prefix", defaults.service_prefix),
        poll_interval=_get_float(sync, "sync", "poll_interval", defaults.poll_interval),
        discovery_timeout=_get_float(sync, "sync", "discovery_timeout", defaults.discovery_timeout),
        fetch_timeout=_get_float(sync, "sync", "fetch_timeout", defaults.fetch_timeout),
        artwork_timeout=_get_float(artwork, "artwork", "timeout", defaults.artwork_timeout),
        artwork_max_bytes=_get_int(artwork, "artwork", "max_bytes", defaults.artwork_max_bytes),
        cache_path=(
            _expand_cache_path(raw_cache_path) if raw_cache_path else defaults.cache_path
        ),
        cleanup_on_exit=_get_bool(artwork, "artwork", "cleanup_on_exit", defaults.cleanup_on_exit),
        web_enabled=_get_bool(web, "web", "enabled", defaults.web_enabled),
        web_host=_get_str(web, "web", "host", defaults.web_host),
        web_port=_get_int(web, "web", "port", defaults.web_port),
    )

    config.validate()
    return config


def load_config(config_path: Path | None = None) -> HudConfig:
    """
    Load configuration from TOML files.

    Args:
        config_path: Optional user config file layered over the defaults.

    Returns:
        Validated HudConfig instance.

    Raises:
        ConfigError: If a file is missing, unparsable or holds bad values.
    """
    logger.debug("Loading default config from %s", DEFAULTS_FILE)
    data = _read_toml(DEFAULTS_FILE)

    if config_path is not None:
        logger.debug("Loading user config from %s", config_path)
        data = _merge(data, _read_toml(Path(config_path)))

    return _build_config(data)
