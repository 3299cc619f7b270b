"""Tests for store configuration loading (store_config)."""

from __future__ import annotations

from pathlib import Path

import pytest

from store_config import ConfigError, get_active_config
from store_config.loader import apply_environment, merge_settings


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "store.yaml"
    path.write_text(text)
    return path


class TestDefaults:
    def test_defaults(self):
        config = get_active_config(environ={})

        assert config.database.data_dir == Path("~/.themanager").expanduser()
        assert config.database.filename == "store.db"
        assert config.database.busy_timeout_seconds == 30.0
        assert config.database.echo is False
        assert config.bootstrap.admin_name == "Admin"
        assert config.bootstrap.admin_pin == "1234"
        assert config.logging.level == "INFO"

    def test_default_url_is_sqlite_file_in_data_dir(self):
        config = get_active_config(environ={})

        assert config.database.uses_data_dir
        assert config.database.resolved_url == (
            f"sqlite:///{Path('~/.themanager').expanduser() / 'store.db'}"
        )

    def test_config_is_frozen(self):
        config = get_active_config(environ={})
        with pytest.raises(AttributeError):
            config.logging = None


class TestOverlay:
    def test_yaml_file_overrides(self, tmp_path):
        path = _write(
            tmp_path,
            "database:\n  data_dir: /srv/shop\n  echo: true\n"
            "bootstrap:\n  admin_pin: '0000'\n",
        )
        config = get_active_config(path, environ={})

        assert config.database.data_dir == Path("/srv/shop")
        assert config.database.echo is True
        assert config.database.filename == "store.db"
        assert config.bootstrap.admin_pin == "0000"
        assert config.bootstrap.admin_name == "Admin"
        assert str(path) in config.source_files

    def test_environment_overrides_file(self, tmp_path):
        path = _write(tmp_path, "logging:\n  level: WARNING\n")
        config = get_active_config(
            path,
            environ={
                "STORE_LOG_LEVEL": "debug",
                "STORE_DATABASE_URL": "sqlite://",
                "STORE_DATA_DIR": str(tmp_path),
            },
        )

        assert config.logging.level == "DEBUG"
        assert config.database.resolved_url == "sqlite://"
        assert not config.database.uses_data_dir
        assert config.database.data_dir == tmp_path

    def test_empty_env_value_ignored(self):
        config = get_active_config(environ={"STORE_LOG_LEVEL": ""})
        assert config.logging.level == "INFO"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml", environ={})

    def test_merge_does_not_mutate_inputs(self):
        base = {"database": {"echo": False, "filename": "a.db"}}
        merged = merge_settings(base, {"database": {"echo": True}})

        assert merged == {"database": {"echo": True, "filename": "a.db"}}
        assert base == {"database": {"echo": False, "filename": "a.db"}}

    def test_apply_environment_only_known_vars(self):
        data = apply_environment({}, {"STORE_DATA_DIR": "/x", "OTHER": "y"})
        assert data == {"database": {"data_dir": "/x"}}


class TestValidation:
    def test_unquoted_pin_rejected(self, tmp_path):
        path = _write(tmp_path, "bootstrap:\n  admin_pin: 1234\n")
        with pytest.raises(ConfigError) as exc_info:
            get_active_config(path, environ={})
        assert exc_info.value.key == "bootstrap.admin_pin"

    def test_non_digit_pin_rejected(self, tmp_path):
        path = _write(tmp_path, "bootstrap:\n  admin_pin: 'abcd'\n")
        with pytest.raises(ConfigError):
            get_active_config(path, environ={})

    def test_unknown_key_rejected(self, tmp_path):
        path = _write(tmp_path, "database:\n  hostname: db\n")
        with pytest.raises(ConfigError) as exc_info:
            get_active_config(path, environ={})
        assert exc_info.value.key == "database.hostname"

    def test_unknown_section_rejected(self, tmp_path):
        path = _write(tmp_path, "metrics:\n  enabled: true\n")
        with pytest.raises(ConfigError):
            get_active_config(path, environ={})

    def test_bad_log_level(self):
        with pytest.raises(ConfigError):
            get_active_config(environ={"STORE_LOG_LEVEL": "LOUD"})

    def test_negative_timeout(self, tmp_path):
        path = _write(tmp_path, "database:\n  busy_timeout_seconds: -1\n")
        with pytest.raises(ConfigError):
            get_active_config(path, environ={})

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)

    def test_non_mapping_file(self, tmp_path):
        path = _write(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigError):
            get_active_config(path, environ={})

