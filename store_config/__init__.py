"""
store_config -- single public entrypoint for store configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Built-in defaults (``defaults.yaml``) are
    overlaid with an optional operator YAML file and then with ``STORE_*``
    environment variables.

Architecture position:
    Configuration.  Sits beside ``store_kernel`` and below
    ``store_services``.  The kernel MUST NEVER import from ``store_config``;
    the application facade translates settings into kernel arguments.

Failure modes:
    - ``FileNotFoundError`` -- the requested YAML file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ConfigError`` (a ``ValueError``) -- invalid or unknown settings.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from store_config.loader import (
    DEFAULTS_PATH,
    apply_environment,
    load_yaml_file,
    merge_settings,
    parse_config,
)
from store_config.schema import (
    BootstrapSettings,
    ConfigError,
    DatabaseSettings,
    LoggingSettings,
    StoreConfig,
)

_logger = logging.getLogger("store_kernel.config")

__all__ = [
    "BootstrapSettings",
    "ConfigError",
    "DatabaseSettings",
    "LoggingSettings",
    "StoreConfig",
    "get_active_config",
]


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> StoreConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Optional operator YAML file overlaid on the defaults.
        environ: Environment to read ``STORE_*`` overrides from.  Defaults
            to ``os.environ``; tests pass a dict.

    Returns:
        A frozen StoreConfig.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        ConfigError: If any setting is invalid.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    sources = [str(DEFAULTS_PATH)]

    if config_path is not None:
        data = merge_settings(data, load_yaml_file(Path(config_path)))
        sources.append(str(config_path))

    data = apply_environment(data, os.environ if environ is None else environ)
    config = parse_config(data, source_files=tuple(sources))

    _logger.info(
        "store_config_loaded",
        extra={
            "source_files": list(config.source_files),
            "database_in_data_dir": config.database.uses_data_dir,
            "log_level": config.logging.level,
        },
    )
    return config
