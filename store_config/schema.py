"""
Configuration Schema -- typed, frozen settings for a store deployment.

Every section of the YAML configuration parses into one of these
dataclasses.  They are immutable once built; a changed setting means a new
``StoreConfig``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


class ConfigError(ValueError):
    """A configuration value is missing, malformed or out of range.

    Attributes:
        key: Dotted path of the offending setting (e.g. ``database.echo``).
        reason: What is wrong with it.
    """

    code: str = "CONFIG_INVALID"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration value '{key}': {reason}")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Where the store lives and how to reach it."""

    data_dir: Path
    filename: str = "store.db"
    url: str | None = None  # overrides data_dir/filename when set
    busy_timeout_seconds: float = 30.0
    echo: bool = False

    @property
    def database_path(self) -> Path:
        return self.data_dir / self.filename

    @property
    def resolved_url(self) -> str:
        if self.url:
            return self.url
        return f"sqlite:///{self.database_path}"

    @property
    def uses_data_dir(self) -> bool:
        """True when the store is the SQLite file under data_dir."""
        return not self.url


@dataclass(frozen=True)
class BootstrapSettings:
    """First-run administrator created when no operator exists."""

    admin_name: str = "Admin"
    admin_pin: str = "1234"


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class StoreConfig:
    """Complete runtime configuration for one store."""

    database: DatabaseSettings
    bootstrap: BootstrapSettings = field(default_factory=BootstrapSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source_files: tuple[str, ...] = ()
