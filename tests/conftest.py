"""Shared fixtures for secrets-driver tests."""
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from secrets_driver.secrets.domains import preferences
from secrets_driver.secrets.domains.cache_store import InMemoryExpiringCache
from secrets_driver.secrets.domains.config_loader import config_from_mapping
from secrets_driver.secrets.domains.models import SecretsManagerError, SecretsRetrievalError
from secrets_driver.secrets.workflows.secret_operations import SecretCache


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeStore:
    """Remote secret store double that records every fetch."""

    def __init__(self, secrets=None):
        self.secrets = dict(secrets or {})
        self.failing = {}
        self.unavailable = None
        self.calls = []

    def fetch_secret(self, name):
        self.calls.append(name)
        if self.unavailable is not None:
            raise SecretsManagerError(self.unavailable)
        if name in self.failing:
            raise SecretsRetrievalError(self.failing[name], secret=name)
        if name not in self.secrets:
            raise SecretsRetrievalError(f"Secret {name} not found", secret=name)
        return self.secrets[name]


@pytest.fixture
def temp_home(tmp_path, monkeypatch):
    """Fixture to create a temporary home directory for testing."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setattr(Path, "home", lambda: fake_home)

    fake_config_dir = fake_home / ".config" / "secrets-driver"
    monkeypatch.setattr(preferences, "PREFERENCES_DIR", fake_config_dir)
    monkeypatch.setattr(preferences, "PREFERENCES_FILE", fake_config_dir / "preferences.json")

    return fake_home


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment variables that would override settings."""
    for variable in (
        "SECRETS_DRIVER_CONFIG", "SECRETS_DRIVER_CACHE_INTERVAL", "SECRETS_DRIVER_CACHE_BACKUP_INTERVAL",
        "SECRETS_DRIVER_CACHE_NOTIFICATION_INTERVAL", "SECRETS_DRIVER_CACHE_KEY_PREFIX",
        "SECRETS_DRIVER_NOTIFICATION_CACHE_KEY_PREFIX", "SECRETS_DRIVER_SEVERITY_LEVEL",
        "SECRETS_DRIVER_PROJECT_TAG", "SECRETS_DRIVER_MANAGER", "SECRETS_DRIVER_NAME_FORMAT",
        "SECRETS_DRIVER_PRODUCTION_TAG", "SECRETS_DRIVER_BACKUP_FALLBACK", "APP_ENV", "APP_NAME",
        "AWS_REGION", "AWS_DEFAULT_REGION", "GCP_PROJECT",
    ):
        monkeypatch.delenv(variable, raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_config():
    """Build a config from YAML-shaped settings without reading the process environment."""
    def _make(**settings):
        base = {"project-tag": "acme", "environment": "staging", "manager": "env"}
        base.update(settings)
        return config_from_mapping(base, environ={})
    return _make


@pytest.fixture
def cache(clock):
    return InMemoryExpiringCache(clock=clock)


@pytest.fixture
def make_secret_cache(make_config, cache, clock, store):
    def _make(**settings):
        return SecretCache(make_config(**settings), cache, manager_factory=lambda config: store, clock=clock)
    return _make
