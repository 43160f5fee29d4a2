"""Configuration loader.

Settings live in a TOML file, ``$MEMVAULT_CONFIG`` or
``~/.memvault/config.toml``::

    [vault]
    path       = "~/Obsidian"
    mem_folder = "_claude-mem"

    [deduplication]
    enabled   = true
    threshold = 0.6

    [ai]
    enabled = true
    model   = "haiku"
    timeout = 30

Every section and key is optional.  Values are validated here, so the rest
of the engine receives a :class:`Config` it can trust.  Components take the
config as an argument; :func:`get_config` is only a convenience cache for
entry points, with :func:`reload_config` to drop it.
"""

from __future__ import annotations

import functools
import logging
import math
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from memvault.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MEMVAULT_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".memvault" / "config.toml"

VALID_MODELS: tuple[str, ...] = ("sonnet", "haiku", "opus")
DEFAULT_MODEL = "sonnet"
DEFAULT_THRESHOLD = 0.6
DEFAULT_GRAY_ZONE = (0.3, 0.59)
DEFAULT_TIMEOUT = 30.0
DEFAULT_BATCH_SIZE = 50


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def clamp_threshold(value: Any, default: float = DEFAULT_THRESHOLD) -> float:
    """Clamp *value* into ``[0, 1]``; non-numbers and NaN become *default*."""
    if not _is_number(value):
        return default
    return max(0.0, min(1.0, float(value)))


def validate_model(value: Any) -> str:
    """Return *value* if it names a supported model, else the default."""
    if isinstance(value, str) and value in VALID_MODELS:
        return value
    return DEFAULT_MODEL


def _as_bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VaultConfig:
    path: Path = Path.home() / "_claude-mem"
    mem_folder: str = "_claude-mem"

    @property
    def mem_path(self) -> Path:
        return self.path / self.mem_folder

    @property
    def projects_path(self) -> Path:
        return self.mem_path / "projects"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VaultConfig":
        defaults = cls()
        path = data.get("path")
        mem_folder = data.get("mem_folder")
        return cls(
            path=Path(path).expanduser() if isinstance(path, str) and path else defaults.path,
            mem_folder=mem_folder if isinstance(mem_folder, str) and mem_folder else defaults.mem_folder,
        )


@dataclass(frozen=True)
class DedupConfig:
    enabled: bool = True
    threshold: float = DEFAULT_THRESHOLD
    gray_zone_min: float = DEFAULT_GRAY_ZONE[0]
    gray_zone_max: float = DEFAULT_GRAY_ZONE[1]
    cross_category: bool = True

    @property
    def gray_zone(self) -> tuple[float, float]:
        return (self.gray_zone_min, self.gray_zone_max)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DedupConfig":
        low = clamp_threshold(data.get("gray_zone_min"), DEFAULT_GRAY_ZONE[0])
        high = clamp_threshold(data.get("gray_zone_max"), DEFAULT_GRAY_ZONE[1])
        if low > high:
            logger.warning("gray_zone_min %.2f > gray_zone_max %.2f; using defaults", low, high)
            low, high = DEFAULT_GRAY_ZONE
        return cls(
            enabled=_as_bool(data.get("enabled"), True),
            threshold=clamp_threshold(data.get("threshold")),
            gray_zone_min=low,
            gray_zone_max=high,
            cross_category=_as_bool(data.get("cross_category"), True),
        )


@dataclass(frozen=True)
class AIConfig:
    enabled: bool = True
    model: str = DEFAULT_MODEL
    #: Seconds before the external process is killed
    timeout: float = DEFAULT_TIMEOUT
    command: str = "claude"
    batch_size: int = DEFAULT_BATCH_SIZE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AIConfig":
        timeout = data.get("timeout")
        if not _is_number(timeout) or timeout <= 0:
            timeout = DEFAULT_TIMEOUT
        batch_size = data.get("batch_size")
        if not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 2:
            batch_size = DEFAULT_BATCH_SIZE
        command = data.get("command")
        return cls(
            enabled=_as_bool(data.get("enabled"), True),
            model=validate_model(data.get("model", DEFAULT_MODEL)),
            timeout=float(timeout),
            command=command if isinstance(command, str) and command else "claude",
            batch_size=batch_size,
        )


@dataclass(frozen=True)
class LoggingConfig:
    verbose: bool = False
    #: ``None`` means the system temp directory
    log_dir: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LoggingConfig":
        log_dir = data.get("log_dir")
        return cls(
            verbose=_as_bool(data.get("verbose"), False),
            log_dir=Path(log_dir).expanduser() if isinstance(log_dir, str) and log_dir else None,
        )


@dataclass(frozen=True)
class Config:
    vault: VaultConfig = field(default_factory=VaultConfig)
    deduplication: DedupConfig = field(default_factory=DedupConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        def section(name: str) -> dict[str, Any]:
            value = data.get(name)
            return value if isinstance(value, dict) else {}

        return cls(
            vault=VaultConfig.from_dict(section("vault")),
            deduplication=DedupConfig.from_dict(section("deduplication")),
            ai=AIConfig.from_dict(section("ai")),
            logging=LoggingConfig.from_dict(section("logging")),
        )


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def config_path() -> Path:
    env = os.environ.get(CONFIG_ENV_VAR)
    return Path(env).expanduser() if env else DEFAULT_CONFIG_PATH


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse a TOML config file, raising :class:`ConfigError` on failure."""
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc


def load_config(path: Path | None = None) -> Config:
    """Load and validate configuration; a missing or broken file yields defaults."""
    path = Path(path) if path is not None else config_path()
    if not path.exists():
        return Config()
    try:
        data = read_config_file(path)
    except ConfigError as exc:
        logger.warning("%s; falling back to defaults", exc)
        return Config()
    return Config.from_dict(data)


@functools.lru_cache(maxsize=1)
def get_config() -> Config:
    """Cached :func:`load_config` for CLI entry points."""
    return load_config()


def reload_config() -> Config:
    """Drop the cached config and load it again."""
    get_config.cache_clear()
    return get_config()
