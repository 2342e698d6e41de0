"""Configuration loader for secrets-driver.

Settings come from three layers, lowest precedence first:

1. Built-in defaults (DEFAULT_SETTINGS)
2. A YAML settings file (optional)
3. Environment variables (ENV_OVERRIDES)

The merged result is validated and frozen into a SecretsDriverConfig.
"""
import copy
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .models import SecretsDriverError
from .preferences import CONFIG_PATH_PREFERENCE, get_preference

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SECRETS_DRIVER_CONFIG"
ROOT_KEY = "secrets-driver"

DEFAULT_PROJECT_TAG = "secrets-driver-project"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "cache-interval": {
        "regular": "30s",
        "backup": "12h",
        "notification": "10s",
    },
    "cache-key-prefix": {
        "regular": "secret-data",
        "notification": "notification-sent-secret",
    },
    "severity-level": "critical",
    "project-tag": None,
    "manager": "aws",
    "secret-name-format": "$env/$project/$key",
    "production-tag": "prod",
    "environment": "production",
    "production-environments": ["prod", "production", "produccion", "producción"],
    "local-environments": ["local"],
    "backup-fallback": True,
    "cache-size": 1024,
    "aws": {"region": None},
    "gcp": {"project_id": None, "service_account_path": None},
}

# (settings path) -> environment variable(s), first one set wins
ENV_OVERRIDES: Dict[Tuple[str, ...], Tuple[str, ...]] = {
    ("cache-interval", "regular"): ("SECRETS_DRIVER_CACHE_INTERVAL",),
    ("cache-interval", "backup"): ("SECRETS_DRIVER_CACHE_BACKUP_INTERVAL",),
    ("cache-interval", "notification"): ("SECRETS_DRIVER_CACHE_NOTIFICATION_INTERVAL",),
    ("cache-key-prefix", "regular"): ("SECRETS_DRIVER_CACHE_KEY_PREFIX",),
    ("cache-key-prefix", "notification"): ("SECRETS_DRIVER_NOTIFICATION_CACHE_KEY_PREFIX",),
    ("severity-level",): ("SECRETS_DRIVER_SEVERITY_LEVEL",),
    ("project-tag",): ("SECRETS_DRIVER_PROJECT_TAG",),
    ("manager",): ("SECRETS_DRIVER_MANAGER",),
    ("secret-name-format",): ("SECRETS_DRIVER_NAME_FORMAT",),
    ("production-tag",): ("SECRETS_DRIVER_PRODUCTION_TAG",),
    ("environment",): ("APP_ENV",),
    ("backup-fallback",): ("SECRETS_DRIVER_BACKUP_FALLBACK",),
    ("aws", "region"): ("AWS_REGION", "AWS_DEFAULT_REGION"),
    ("gcp", "project_id"): ("GCP_PROJECT",),
}

# RFC 5424 severity names -> stdlib logging levels
SEVERITY_LEVELS: Dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "emergency": logging.CRITICAL,
}

_DURATION_UNITS: Dict[str, float] = {
    "w": 604800, "week": 604800, "weeks": 604800,
    "d": 86400, "day": 86400, "days": 86400,
    "h": 3600, "hour": 3600, "hours": 3600,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "ms": 0.001, "millisecond": 0.001, "milliseconds": 0.001,
}

_DURATION_PART = re.compile(r"\s*(\d+(?:\.\d+)?)\s*([a-z]+)\s*")

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


class ConfigError(SecretsDriverError):
    """Configuration error exception."""
    pass


def default_config_path() -> Path:
    return Path.home() / ".config" / "secrets-driver" / "config.yml"


def _get_config_path(explicit_path: Optional[str] = None) -> Optional[str]:
    """
    Locate the settings file.

    Priority order:
    1. Explicit path argument (must exist)
    2. SECRETS_DRIVER_CONFIG environment variable (must exist)
    3. User preference (stored in ~/.config/secrets-driver/preferences.json)
    4. Default location: ~/.config/secrets-driver/config.yml

    Returns:
        Absolute path to the settings file, or None if there is none and
        built-in defaults should be used

    Raises:
        ConfigError: If an explicitly requested file doesn't exist
    """
    for source, requested in (("argument", explicit_path), ("environment", os.getenv(CONFIG_ENV_VAR))):
        if requested:
            config_path = Path(requested).expanduser()
            if not config_path.is_file():
                raise ConfigError(f"Configuration file from {source} not found at: {config_path}")
            logger.info(f"Using config from {source}: {config_path}")
            return str(config_path)

    config_path_pref = get_preference(CONFIG_PATH_PREFERENCE)
    if config_path_pref:
        config_path = Path(config_path_pref)
        if config_path.exists():
            logger.info(f"Using config from preference: {config_path}")
            return str(config_path)
        logger.warning(f"Config path from preference doesn't exist: {config_path}")

    default_config = default_config_path()
    if default_config.exists():
        logger.info(f"Using default config location: {default_config}")
        return str(default_config)

    logger.debug("No configuration file found, using built-in defaults")
    return None


def parse_duration(value: Any) -> timedelta:
    """
    Parse a duration such as "30s", "12h" or "1h 30m".

    Bare numbers are taken as seconds.

    Raises:
        ConfigError: If the value is not a valid, positive duration
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        if re.fullmatch(r"\d+(?:\.\d+)?", text):
            seconds = float(text)
        else:
            seconds = 0.0
            position = 0
            while position < len(text):
                match = _DURATION_PART.match(text, position)
                if not match or match.group(2) not in _DURATION_UNITS:
                    raise ConfigError(f"Invalid duration: {value!r}")
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                position = match.end()
            if not text:
                raise ConfigError("Invalid duration: empty value")

    if seconds <= 0:
        raise ConfigError(f"Duration must be positive: {value!r}")
    return timedelta(seconds=seconds)


def normalize_severity(value: str) -> str:
    """
    Normalize a severity name for logging ("Informational" -> "info").

    Raises:
        ConfigError: If the severity is not an RFC 5424 level name
    """
    severity = str(value).strip().lower()
    if severity == "informational":
        severity = "info"
    if severity not in SEVERITY_LEVELS:
        raise ConfigError(
            f"Unsupported severity level: {value}\n"
            f"Supported levels: {', '.join(SEVERITY_LEVELS)}"
        )
    return severity


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _parse_bool(value: Any, setting: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ConfigError(f"Invalid boolean for '{setting}': {value!r}")


def _merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def _apply_env_overrides(settings: Dict[str, Any], environ: Mapping[str, str]) -> None:
    for path, variables in ENV_OVERRIDES.items():
        for variable in variables:
            if environ.get(variable):
                target = settings
                for part in path[:-1]:
                    target = target.setdefault(part, {})
                target[path[-1]] = environ[variable]
                break


@dataclass(frozen=True)
class SecretsDriverConfig:
    """Validated, immutable secrets-driver settings."""
    regular_interval: timedelta = timedelta(seconds=30)
    backup_interval: timedelta = timedelta(hours=12)
    notification_interval: timedelta = timedelta(seconds=10)
    cache_key_prefix: str = "secret-data"
    notification_cache_key_prefix: str = "notification-sent-secret"
    severity_level: str = "critical"
    project_tag: str = DEFAULT_PROJECT_TAG
    manager: str = "aws"
    secret_name_format: str = "$env/$project/$key"
    production_tag: str = "prod"
    environment: str = "production"
    production_environments: Tuple[str, ...] = ("prod", "production", "produccion", "producción")
    local_environments: Tuple[str, ...] = ("local",)
    backup_fallback: bool = True
    cache_size: int = 1024
    aws_region: Optional[str] = None
    gcp_project_id: Optional[str] = None
    gcp_service_account_path: Optional[str] = None
    source_path: Optional[str] = field(default=None, compare=False)

    @property
    def log_level(self) -> int:
        return SEVERITY_LEVELS[self.severity_level]

    def to_dict(self) -> Dict[str, Any]:
        """Settings in the same shape as the YAML file."""
        return {
            "cache-interval": {
                "regular": f"{self.regular_interval.total_seconds():g}s",
                "backup": f"{self.backup_interval.total_seconds():g}s",
                "notification": f"{self.notification_interval.total_seconds():g}s",
            },
            "cache-key-prefix": {
                "regular": self.cache_key_prefix,
                "notification": self.notification_cache_key_prefix,
            },
            "severity-level": self.severity_level,
            "project-tag": self.project_tag,
            "manager": self.manager,
            "secret-name-format": self.secret_name_format,
            "production-tag": self.production_tag,
            "environment": self.environment,
            "production-environments": list(self.production_environments),
            "local-environments": list(self.local_environments),
            "backup-fallback": self.backup_fallback,
            "cache-size": self.cache_size,
            "aws": {"region": self.aws_region},
            "gcp": {
                "project_id": self.gcp_project_id,
                "service_account_path": self.gcp_service_account_path,
            },
        }


def config_from_mapping(
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    source_path: Optional[str] = None,
) -> SecretsDriverConfig:
    """
    Build a validated config from a settings mapping.

    Args:
        overrides: Settings in the YAML file shape, merged over the defaults
        environ: Environment to read overrides from (os.environ if None)
        source_path: Path the settings were read from, for display only

    Raises:
        ConfigError: If any setting is invalid
    """
    if environ is None:
        environ = os.environ

    settings = copy.deepcopy(DEFAULT_SETTINGS)
    if overrides:
        if ROOT_KEY in overrides and isinstance(overrides[ROOT_KEY], Mapping):
            overrides = overrides[ROOT_KEY]
        _merge(settings, overrides)
    _apply_env_overrides(settings, environ)

    for section in ("cache-interval", "cache-key-prefix", "aws", "gcp"):
        if not isinstance(settings.get(section), dict):
            raise ConfigError(f"'{section}' must be a mapping")

    project_tag = settings["project-tag"] or slugify(environ.get("APP_NAME", "")) or DEFAULT_PROJECT_TAG

    manager = str(settings["manager"] or "").strip()
    if not manager:
        raise ConfigError("'manager' must name a secrets manager backend")

    name_format = settings["secret-name-format"]
    if not isinstance(name_format, str) or not name_format:
        raise ConfigError("'secret-name-format' must be a non-empty string")

    try:
        cache_size = int(settings["cache-size"])
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid 'cache-size': {settings['cache-size']!r}")
    if cache_size < 1:
        raise ConfigError("'cache-size' must be at least 1")

    return SecretsDriverConfig(
        regular_interval=parse_duration(settings["cache-interval"]["regular"]),
        backup_interval=parse_duration(settings["cache-interval"]["backup"]),
        notification_interval=parse_duration(settings["cache-interval"]["notification"]),
        cache_key_prefix=str(settings["cache-key-prefix"]["regular"]),
        notification_cache_key_prefix=str(settings["cache-key-prefix"]["notification"]),
        severity_level=normalize_severity(settings["severity-level"]),
        project_tag=str(project_tag),
        manager=manager,
        secret_name_format=name_format,
        production_tag=str(settings["production-tag"] or ""),
        environment=str(settings["environment"] or ""),
        production_environments=tuple(str(e).lower() for e in settings["production-environments"] or ()),
        local_environments=tuple(str(e).lower() for e in settings["local-environments"] or ()),
        backup_fallback=_parse_bool(settings["backup-fallback"], "backup-fallback"),
        cache_size=cache_size,
        aws_region=settings["aws"].get("region"),
        gcp_project_id=settings["gcp"].get("project_id"),
        gcp_service_account_path=settings["gcp"].get("service_account_path"),
        source_path=source_path,
    )


def load_config(config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> SecretsDriverConfig:
    """
    Load and validate configuration.

    Args:
        config_path: Explicit settings file; located automatically if None
        environ: Environment to read overrides from (os.environ if None)

    Returns:
        SecretsDriverConfig with defaults, file settings and environment
        overrides applied

    Raises:
        ConfigError: If the settings file is unreadable or any setting is invalid
    """
    # Get config path dynamically each time (not cached at module level)
    path = _get_config_path(config_path)

    file_settings: Dict[str, Any] = {}
    if path:
        try:
            with open(path, 'r') as f:
                file_settings = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML config at {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read config file at {path}: {e}")

        if file_settings is None:
            logger.warning(f"Config file at {path} is empty, using defaults")
            file_settings = {}
        elif not isinstance(file_settings, dict):
            raise ConfigError(f"Config file at {path} must contain a mapping of settings")

    config = config_from_mapping(file_settings, environ=environ, source_path=path)

    logger.info(f"Configuration loaded successfully from {path or 'built-in defaults'}")
    logger.debug(f"Using secrets manager: {config.manager}")
    logger.debug(f"Using project tag: {config.project_tag}")

    return config
