"""User preferences for secrets-driver.

Preferences are kept as a small JSON document in the XDG config directory:
~/.config/secrets-driver/preferences.json

Only the config path preference is used today ("config_path"), which lets a
developer point the CLI and `load_config()` at a settings file outside the
default location.
"""
import json
from pathlib import Path
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

PREFERENCES_DIR = Path.home() / ".config" / "secrets-driver"
PREFERENCES_FILE = PREFERENCES_DIR / "preferences.json"

CONFIG_PATH_PREFERENCE = "config_path"


def _read_preferences() -> Dict[str, Any]:
    """Read the preferences document, treating unreadable files as empty."""
    if not PREFERENCES_FILE.exists():
        return {}

    try:
        with open(PREFERENCES_FILE, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Ignoring unreadable preferences file {PREFERENCES_FILE}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Ignoring preferences file {PREFERENCES_FILE}: expected a JSON object")
        return {}

    return data


def _write_preferences(preferences: Dict[str, Any]) -> None:
    PREFERENCES_DIR.mkdir(parents=True, exist_ok=True)
    with open(PREFERENCES_FILE, 'w') as f:
        json.dump(preferences, f, indent=2, sort_keys=True)


def get_preference(key: str) -> Optional[str]:
    """Return a stored preference, or None if it was never set."""
    return _read_preferences().get(key)


def set_preference(key: str, value: str) -> None:
    """Store a preference, creating the preferences file if needed."""
    preferences = _read_preferences()
    preferences[key] = value
    _write_preferences(preferences)
    logger.info(f"Preference '{key}' set to: {value}")


def clear_preference(key: str) -> bool:
    """
    Remove a preference.

    Returns:
        True if the preference existed and was removed
    """
    preferences = _read_preferences()
    if key not in preferences:
        logger.debug(f"Preference '{key}' not set, nothing to clear")
        return False

    del preferences[key]
    _write_preferences(preferences)
    logger.info(f"Preference '{key}' cleared")
    return True


def get_all_preferences() -> Dict[str, Any]:
    return _read_preferences()
