"""Test suite for config management.

This test suite validates:
- Preferences module functionality
- Config file location (no module-level caching)
- Settings precedence: defaults < YAML file < environment variables
- Validation of durations, severities and booleans
- CLI commands for config management
"""
import json
from argparse import Namespace
from datetime import timedelta

import pytest
import yaml

from secrets_driver.secrets.domains import config_loader
from secrets_driver.secrets.domains import preferences
from secrets_driver.secrets.domains.config_loader import ConfigError, parse_duration


@pytest.fixture
def temp_config_dir(temp_home):
    """Fixture to create temporary config directory."""
    config_dir = temp_home / ".config" / "secrets-driver"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


@pytest.fixture
def sample_config_content():
    """Sample valid config content."""
    return {
        "cache-interval": {"regular": "1m", "backup": "1d"},
        "project-tag": "billing",
        "manager": "gcp",
        "gcp": {"project_id": "test-project"},
    }


@pytest.fixture
def temp_config_file(temp_config_dir, sample_config_content):
    """Fixture to create a config file at the default location."""
    config_file = temp_config_dir / "config.yml"
    with open(config_file, 'w') as f:
        yaml.dump(sample_config_content, f)
    return config_file


class TestPreferencesModule:
    """Test suite for preferences module."""

    def test_get_preference_returns_none_when_not_set(self, temp_home):
        """Test that get_preference returns None when preference is not set."""
        assert preferences.get_preference("config_path") is None

    def test_set_and_get_preference(self, temp_home):
        """Test that set_preference stores a value get_preference returns."""
        preferences.set_preference("config_path", "/path/to/config.yml")

        assert preferences.get_preference("config_path") == "/path/to/config.yml"

    def test_clear_preference_removes_value(self, temp_home):
        """Test that clear_preference removes a value."""
        preferences.set_preference("config_path", "/path/to/config.yml")

        assert preferences.clear_preference("config_path") is True
        assert preferences.get_preference("config_path") is None

    def test_clear_nonexistent_preference(self, temp_home):
        """Test clearing a preference that doesn't exist."""
        assert preferences.clear_preference("nonexistent_key") is False

    def test_preferences_persisted_to_json_file(self, temp_home):
        """Test that preferences are persisted to the JSON file."""
        preferences.set_preference("config_path", "/path/to/config.yml")

        with open(preferences.PREFERENCES_FILE, 'r') as f:
            data = json.load(f)

        assert data["config_path"] == "/path/to/config.yml"

    def test_corrupt_preferences_file_reads_empty(self, temp_home):
        """Test that an unreadable preferences file is treated as empty."""
        preferences.PREFERENCES_DIR.mkdir(parents=True)
        preferences.PREFERENCES_FILE.write_text("{not json")

        assert preferences.get_all_preferences() == {}


class TestConfigPath:
    """Test suite for locating the settings file."""

    def test_no_file_means_defaults(self, temp_home, clean_env):
        """Test that no settings file is not an error."""
        assert config_loader._get_config_path() is None

    def test_default_location(self, temp_home, clean_env, temp_config_file):
        """Test that the default location is used when present."""
        assert config_loader._get_config_path() == str(temp_config_file)

    def test_preference_wins_over_default(self, temp_home, clean_env, temp_config_file, tmp_path):
        """Test that the preference path is used over the default location."""
        custom = tmp_path / "custom.yml"
        custom.write_text("manager: env\n")
        preferences.set_preference("config_path", str(custom))

        assert config_loader._get_config_path() == str(custom)

    def test_preference_with_nonexistent_path(self, temp_home, clean_env, temp_config_file, tmp_path):
        """Test that a stale preference falls back to the default location."""
        preferences.set_preference("config_path", str(tmp_path / "nonexistent.yml"))

        assert config_loader._get_config_path() == str(temp_config_file)

    def test_env_var_wins_over_preference(self, temp_home, clean_env, tmp_path, monkeypatch):
        """Test that SECRETS_DRIVER_CONFIG takes precedence over the preference."""
        from_env = tmp_path / "env.yml"
        from_env.write_text("manager: env\n")
        preferences.set_preference("config_path", str(tmp_path / "other.yml"))
        monkeypatch.setenv("SECRETS_DRIVER_CONFIG", str(from_env))

        assert config_loader._get_config_path() == str(from_env)

    def test_explicit_missing_path_raises(self, temp_home, clean_env, tmp_path):
        """Test that an explicitly requested file must exist."""
        with pytest.raises(ConfigError) as exc_info:
            config_loader._get_config_path(str(tmp_path / "missing.yml"))

        assert "not found" in str(exc_info.value)

    def test_config_path_not_cached_at_module_level(self, temp_home, clean_env, tmp_path):
        """CRITICAL: Test that changing the preference takes effect without a restart."""
        config1 = tmp_path / "config1.yml"
        config2 = tmp_path / "config2.yml"
        config1.write_text("project-tag: project-one\n")
        config2.write_text("project-tag: project-two\n")

        preferences.set_preference("config_path", str(config1))
        assert config_loader.load_config().project_tag == "project-one"

        preferences.set_preference("config_path", str(config2))
        assert config_loader.load_config().project_tag == "project-two"


class TestLoadConfig:
    """Test suite for load_config and settings precedence."""

    def test_defaults(self, temp_home, clean_env):
        """Test the built-in defaults."""
        config = config_loader.load_config()

        assert config.regular_interval == timedelta(seconds=30)
        assert config.backup_interval == timedelta(hours=12)
        assert config.notification_interval == timedelta(seconds=10)
        assert config.cache_key_prefix == "secret-data"
        assert config.notification_cache_key_prefix == "notification-sent-secret"
        assert config.severity_level == "critical"
        assert config.manager == "aws"
        assert config.secret_name_format == "$env/$project/$key"
        assert config.production_tag == "prod"
        assert config.project_tag == "secrets-driver-project"
        assert config.backup_fallback is True
        assert config.source_path is None

    def test_project_tag_from_app_name(self, temp_home, clean_env, monkeypatch):
        """Test that the default project tag is the slug of APP_NAME."""
        monkeypatch.setenv("APP_NAME", "Acme Billing API")

        assert config_loader.load_config().project_tag == "acme-billing-api"

    def test_file_settings_override_defaults(self, temp_home, clean_env, temp_config_file):
        """Test that YAML settings are merged over the defaults."""
        config = config_loader.load_config()

        assert config.regular_interval == timedelta(minutes=1)
        assert config.backup_interval == timedelta(days=1)
        assert config.notification_interval == timedelta(seconds=10)
        assert config.project_tag == "billing"
        assert config.manager == "gcp"
        assert config.gcp_project_id == "test-project"
        assert config.source_path == str(temp_config_file)

    def test_root_key_is_unwrapped(self, temp_home, clean_env, temp_config_dir):
        """Test that settings nested under 'secrets-driver:' are accepted."""
        (temp_config_dir / "config.yml").write_text("secrets-driver:\n  manager: env\n")

        assert config_loader.load_config().manager == "env"

    def test_env_overrides_file(self, temp_home, clean_env, temp_config_file, monkeypatch):
        """Test that environment variables take precedence over the file."""
        monkeypatch.setenv("SECRETS_DRIVER_CACHE_INTERVAL", "45s")
        monkeypatch.setenv("SECRETS_DRIVER_MANAGER", "env")
        monkeypatch.setenv("SECRETS_DRIVER_BACKUP_FALLBACK", "off")
        monkeypatch.setenv("APP_ENV", "qa")

        config = config_loader.load_config()

        assert config.regular_interval == timedelta(seconds=45)
        assert config.manager == "env"
        assert config.backup_fallback is False
        assert config.environment == "qa"

    def test_empty_config_file_uses_defaults(self, temp_home, clean_env, temp_config_dir):
        """Test handling of empty config file."""
        (temp_config_dir / "config.yml").write_text("")

        assert config_loader.load_config().manager == "aws"

    def test_invalid_yaml_config(self, temp_home, clean_env, temp_config_dir):
        """Test handling of invalid YAML."""
        (temp_config_dir / "config.yml").write_text("invalid: yaml: content: [")

        with pytest.raises(ConfigError) as exc_info:
            config_loader.load_config()

        assert "parse" in str(exc_info.value).lower()

    def test_non_mapping_config(self, temp_home, clean_env, temp_config_dir):
        """Test that a YAML list is rejected."""
        (temp_config_dir / "config.yml").write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            config_loader.load_config()

    def test_unsupported_severity(self, temp_home, clean_env, monkeypatch):
        """Test that an unknown severity level is a configuration error."""
        monkeypatch.setenv("SECRETS_DRIVER_SEVERITY_LEVEL", "apocalyptic")

        with pytest.raises(ConfigError) as exc_info:
            config_loader.load_config()

        assert "Unsupported severity level" in str(exc_info.value)

    def test_informational_severity_normalized(self, temp_home, clean_env, monkeypatch):
        """Test that 'Informational' is stored as 'info'."""
        monkeypatch.setenv("SECRETS_DRIVER_SEVERITY_LEVEL", "Informational")

        assert config_loader.load_config().severity_level == "info"

    def test_invalid_boolean(self, temp_home, clean_env, monkeypatch):
        """Test that an unparseable boolean is a configuration error."""
        monkeypatch.setenv("SECRETS_DRIVER_BACKUP_FALLBACK", "sometimes")

        with pytest.raises(ConfigError):
            config_loader.load_config()

    def test_to_dict_round_trips_through_config_from_mapping(self, temp_home, clean_env, temp_config_file):
        """Test that dumped settings load back to an equal config."""
        config = config_loader.load_config()

        assert config_loader.config_from_mapping(config.to_dict(), environ={}) == config


class TestParseDuration:
    """Test suite for duration strings."""

    @pytest.mark.parametrize("text, expected", [
        ("30s", timedelta(seconds=30)),
        ("12h", timedelta(hours=12)),
        ("10 seconds", timedelta(seconds=10)),
        ("1h 30m", timedelta(hours=1, minutes=30)),
        ("1d2h", timedelta(days=1, hours=2)),
        ("2w", timedelta(weeks=2)),
        ("500ms", timedelta(milliseconds=500)),
        ("90", timedelta(seconds=90)),
        (45, timedelta(seconds=45)),
    ])
    def test_valid_durations(self, text, expected):
        """Test accepted duration formats."""
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "soon", "10 parsecs", "0s", "-5s", "1h and a bit"])
    def test_invalid_durations(self, text):
        """Test rejected duration formats."""
        with pytest.raises(ConfigError):
            parse_duration(text)


class TestCLICommands:
    """Test suite for config CLI commands."""

    def test_config_set_path_validates_file_exists(self, temp_home, tmp_path):
        """Test that config set-path validates file exists."""
        from secrets_driver.cli.main import cmd_config_set_path

        with pytest.raises(SystemExit) as exc_info:
            cmd_config_set_path(Namespace(path=str(tmp_path / "nonexistent.yml")))

        assert exc_info.value.code == 1

    def test_config_set_path_stores_absolute_path(self, temp_home, temp_config_file):
        """Test that config set-path stores absolute path."""
        from secrets_driver.cli.main import cmd_config_set_path

        cmd_config_set_path(Namespace(path=str(temp_config_file)))

        assert preferences.get_preference("config_path") == str(temp_config_file.resolve())

    def test_config_show_with_preference(self, temp_home, temp_config_file, capsys):
        """Test config show command with preference set."""
        from secrets_driver.cli.main import cmd_config_show

        preferences.set_preference("config_path", str(temp_config_file))
        cmd_config_show(Namespace())

        captured = capsys.readouterr()
        assert str(temp_config_file) in captured.out
        assert "preference" in captured.out.lower()

    def test_config_show_without_preference(self, temp_home, temp_config_file, capsys):
        """Test config show command without preference."""
        from secrets_driver.cli.main import cmd_config_show

        cmd_config_show(Namespace())

        captured = capsys.readouterr()
        assert str(temp_config_file) in captured.out
        assert "default" in captured.out.lower()

    def test_config_clear_removes_preference(self, temp_home, temp_config_file, capsys):
        """Test config clear command removes preference."""
        from secrets_driver.cli.main import cmd_config_clear

        preferences.set_preference("config_path", str(temp_config_file))
        cmd_config_clear(Namespace())

        assert preferences.get_preference("config_path") is None
        assert "cleared" in capsys.readouterr().out.lower()

    def test_config_dump_prints_effective_settings(self, temp_home, clean_env, temp_config_file, capsys):
        """Test config dump prints merged settings as YAML."""
        from secrets_driver.cli.main import cmd_config_dump

        cmd_config_dump(Namespace(config=None))

        out = capsys.readouterr().out
        dumped = yaml.safe_load(out)
        assert dumped["project-tag"] == "billing"
        assert dumped["cache-interval"]["regular"] == "60s"
        assert str(temp_config_file) in out
