"""
Configuration Loader (``store_config.loader``).

Responsibility
--------------
Loads YAML files, layers them over the built-in defaults, applies
``STORE_*`` environment overrides, and parses the result into the frozen
dataclasses of ``store_config.schema``.  Callers use
``store_config.get_active_config()``; the functions here are its building
blocks and test tooling.

Architecture position
---------------------
**Config layer**.  No dependency on ``store_kernel`` or
``store_services``.

Invariants enforced
-------------------
* Every parse error raises ``ConfigError`` naming the dotted key.
* Unknown keys are rejected rather than silently ignored.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values  -> ``ConfigError``.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from store_config.schema import (
    BootstrapSettings,
    ConfigError,
    DatabaseSettings,
    LoggingSettings,
    StoreConfig,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "STORE_DATABASE_URL": ("database", "url"),
    "STORE_DATA_DIR": ("database", "data_dir"),
    "STORE_LOG_LEVEL": ("logging", "level"),
}

_SECTION_KEYS: dict[str, frozenset[str]] = {
    "database": frozenset(
        {"data_dir", "filename", "url", "busy_timeout_seconds", "echo"}
    ),
    "bootstrap": frozenset({"admin_name", "admin_pin"}),
    "logging": frozenset({"level"}),
}

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    return data


def merge_settings(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` on ``base``.  Inputs are not modified."""
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def apply_environment(
    data: Mapping[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Overlay the ``STORE_*`` environment variables that are set and non-empty."""
    overrides: dict[str, dict[str, Any]] = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            overrides.setdefault(section, {})[key] = value
    return merge_settings(data, overrides)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigError(name, "must be a mapping")
    unknown = set(section) - _SECTION_KEYS[name]
    if unknown:
        raise ConfigError(f"{name}.{sorted(unknown)[0]}", "unknown setting")
    return section


def _require_str(value: Any, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(key, "must be a non-empty string")
    return value


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false", "1", "0", "yes", "no"):
        return value.lower() in ("true", "1", "yes")
    raise ConfigError(key, f"expected a boolean, got {value!r}")


def parse_database(section: Mapping[str, Any]) -> DatabaseSettings:
    data_dir = Path(_require_str(section.get("data_dir"), "database.data_dir")).expanduser()
    filename = _require_str(section.get("filename", "store.db"), "database.filename")

    url = section.get("url")
    if url is not None:
        url = _require_str(url, "database.url")

    timeout = section.get("busy_timeout_seconds", 30)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float, str)):
        raise ConfigError("database.busy_timeout_seconds", "must be a number")
    try:
        busy_timeout = float(timeout)
    except ValueError:
        raise ConfigError("database.busy_timeout_seconds", "must be a number") from None
    if busy_timeout < 0:
        raise ConfigError("database.busy_timeout_seconds", "must not be negative")

    return DatabaseSettings(
        data_dir=data_dir,
        filename=filename,
        url=url,
        busy_timeout_seconds=busy_timeout,
        echo=_parse_bool(section.get("echo", False), "database.echo"),
    )


def parse_bootstrap(section: Mapping[str, Any]) -> BootstrapSettings:
    pin = section.get("admin_pin", "1234")
    # An unquoted YAML PIN parses as int and loses leading zeros
    if not isinstance(pin, str):
        raise ConfigError("bootstrap.admin_pin", "must be a quoted string of digits")
    if not (pin.isascii() and pin.isdigit()):
        raise ConfigError("bootstrap.admin_pin", "must contain digits only")
    return BootstrapSettings(
        admin_name=_require_str(section.get("admin_name", "Admin"), "bootstrap.admin_name"),
        admin_pin=pin,
    )


def parse_logging(section: Mapping[str, Any]) -> LoggingSettings:
    level = _require_str(section.get("level", "INFO"), "logging.level").upper()
    if level not in _LOG_LEVELS:
        raise ConfigError("logging.level", f"must be one of {sorted(_LOG_LEVELS)}")
    return LoggingSettings(level=level)


def parse_config(
    data: Mapping[str, Any],
    source_files: tuple[str, ...] = (),
) -> StoreConfig:
    """
    Parse a merged settings dict into a StoreConfig.

    Raises:
        ConfigError: On unknown sections or keys, or invalid values.
    """
    unknown = set(data) - set(_SECTION_KEYS)
    if unknown:
        raise ConfigError(sorted(unknown)[0], "unknown section")
    return StoreConfig(
        database=parse_database(_section(data, "database")),
        bootstrap=parse_bootstrap(_section(data, "bootstrap")),
        logging=parse_logging(_section(data, "logging")),
        source_files=source_files,
    )
