"""Configuration assembled once at startup from arguments, environment and YAML."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .types import Category


CONFIG_ENV = "MAILDELIVER_CONFIG"
DEFAULT_MAILDIR_NAME = "Maildir"
DEFAULT_LOG_LEVEL = "info"
LOG_LEVELS = ("debug", "info", "warning", "warn", "error", "critical")


class ConfigError(ValueError):
    """Raised when configuration is invalid or missing."""


@dataclass(frozen=True)
class LoggingConfig:
    """Logging-related configuration."""

    level: str = DEFAULT_LOG_LEVEL
    file: Path | None = None
    console: bool = False


@dataclass(frozen=True)
class DeliveryConfig:
    """Everything a delivery needs, resolved before any filesystem access."""

    maildir: Path
    hostname_fallback: str | None = None
    extension: str | None = None
    categories: tuple[Category, ...] = tuple(Category)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(
    maildir: Path | str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    config_path: Path | str | None = None,
    verbose: bool = False,
) -> DeliveryConfig:
    """Build the delivery configuration.

    ``maildir`` is the optional command line argument. ``environ`` defaults to
    ``os.environ``. The settings file is read from ``config_path`` or
    ``$MAILDELIVER_CONFIG`` when either is given; it is optional otherwise.
    """

    env = os.environ if environ is None else environ
    raw = _load_settings(config_path or env.get(CONFIG_ENV))

    logging_config = _parse_logging(raw.get("logging"))
    if verbose:
        logging_config = LoggingConfig(
            level="debug",
            file=logging_config.file,
            console=True,
        )

    return DeliveryConfig(
        maildir=_resolve_maildir(maildir, raw.get("maildir"), env),
        hostname_fallback=env.get("HOSTNAME") or None,
        extension=env.get("EXTENSION") or None,
        logging=logging_config,
    )


def _load_settings(path: Path | str | None) -> dict[str, Any]:
    if not path:
        return {}
    settings_path = Path(path).expanduser()
    try:
        with settings_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {settings_path}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {settings_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {settings_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping.")
    return raw


def _resolve_maildir(
    explicit: Path | str | None,
    configured: Any,
    env: Mapping[str, str],
) -> Path:
    if configured is not None and (not isinstance(configured, str) or not configured.strip()):
        raise ConfigError("maildir must be a non-empty string.")
    if explicit:
        return Path(explicit).expanduser()
    if configured is not None:
        return Path(configured).expanduser()
    home = env.get("HOME")
    if not home:
        raise ConfigError("HOME environment variable not set")
    return Path(home) / DEFAULT_MAILDIR_NAME


def _parse_logging(value: Any) -> LoggingConfig:
    if value is None:
        return LoggingConfig()
    if not isinstance(value, dict):
        raise ConfigError("logging must be a mapping.")
    level = str(value.get("level", DEFAULT_LOG_LEVEL)).strip().lower()
    if level not in LOG_LEVELS:
        raise ConfigError(f"Unknown log level: {level}")
    raw_file = value.get("file")
    if raw_file is not None and not isinstance(raw_file, str):
        raise ConfigError("logging.file must be a string path.")
    log_file = Path(raw_file).expanduser() if raw_file else None
    console = bool(value.get("console", False))
    return LoggingConfig(level=level, file=log_file, console=console)


__all__ = [
    "CONFIG_ENV",
    "ConfigError",
    "DeliveryConfig",
    "LoggingConfig",
    "load_config",
]
