"""Substitution of remote secrets into application configuration."""
import logging
from typing import Any, Callable, Dict, List, MutableMapping, Optional

from .secret_operations import SecretCache

logger = logging.getLogger(__name__)

DEFAULT_ROOT = "database.connections"
DEFAULT_FLAG = "use_secrets_driver"


class ConfigInjector:
    """
    Rewrites opted-in configuration groups with values from a SecretCache.

    Each group under `root` (a dotted path into the application config) whose
    `flag` setting is truthy is resolved as a secret named after the group.
    The secret's fields are merged over the group's own settings.
    """

    def __init__(
        self,
        secret_cache: SecretCache,
        root: str = DEFAULT_ROOT,
        flag: str = DEFAULT_FLAG,
        on_update: Optional[Callable[[str], None]] = None,
    ):
        self.secret_cache = secret_cache
        self.root = root
        self.flag = flag
        self.on_update = on_update

    def _groups(self, app_config: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        node: Any = app_config
        for part in self.root.split("."):
            if not isinstance(node, MutableMapping) or part not in node:
                return {}
            node = node[part]
        return node if isinstance(node, MutableMapping) else {}

    def inject(self, app_config: MutableMapping[str, Any]) -> List[str]:
        """
        Resolve and merge secrets for every opted-in group.

        Nothing is resolved in a local environment, where the application's
        own settings are used as they are.

        Returns:
            Names of the groups that were rewritten
        """
        if self.secret_cache.is_local:
            logger.debug("Local environment, keeping local configuration")
            return []

        groups = self._groups(app_config)
        selected = [
            name for name, settings in groups.items()
            if isinstance(settings, MutableMapping) and settings.get(self.flag)
        ]
        if not selected:
            return []

        resolved: Dict[str, Any] = self.secret_cache.resolve_secrets(selected)

        updated = []
        for name, values in resolved.items():
            if not values:
                # No data available; keep the local settings
                continue
            if not isinstance(values, dict):
                logger.warning(f"Secret for '{self.root}.{name}' is not a mapping, skipped")
                continue

            groups[name].update(values)
            if self.on_update is not None:
                self.on_update(name)
            updated.append(name)
            logger.info(f"Configuration '{self.root}.{name}' updated from secrets")

        return updated


def inject_database_credentials(
    app_config: MutableMapping[str, Any],
    secret_cache: SecretCache,
    on_update: Optional[Callable[[str], None]] = None,
) -> List[str]:
    """Merge remote credentials into every database connection with use_secrets_driver set."""
    return ConfigInjector(secret_cache, on_update=on_update).inject(app_config)
