"""Workflow for secret resolution with two-tier caching and failure throttling."""
import copy
import logging
from typing import Dict, Iterable, List, Optional, Union

from ..domains.cache_store import Clock, ExpiringCache, InMemoryExpiringCache, utc_now
from ..domains.config_loader import SecretsDriverConfig, load_config
from ..domains.models import UNRESOLVED_SOURCE, Secret, SecretValue, SecretsRetrievalError
from ..domains.name_resolver import environment_tag, is_local, resolve_secret_name
from ..domains.registry import ManagerFactory, SecretStore, get_manager_factory
from .notifier import FailureNotifier

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = "backup"

SecretKeys = Union[str, Iterable[str]]


class SecretCache:
    """
    Resolves logical secret keys to values, cache first.

    Every successful fetch is written to two cache tiers: a short-lived
    regular entry that serves lookups, and a long-lived backup entry that
    stands in for the secret when a later fetch of it fails. Failures never
    propagate to the caller; they degrade to an empty value and are reported
    through the FailureNotifier.
    """

    def __init__(
        self,
        config: SecretsDriverConfig,
        cache: ExpiringCache,
        manager_factory: Optional[ManagerFactory] = None,
        notifier: Optional[FailureNotifier] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            config: Validated settings
            cache: Shared expiring cache for secret data and notification sentinels
            manager_factory: Builds the remote secret store; looked up from the
                registry by config.manager when not given
            notifier: Failure notifier; one over the same cache is created when not given
            clock: Returns the current time as an aware datetime

        Raises:
            ConfigError: If config.manager names no registered backend
        """
        self.config = config
        self.cache = cache
        self.clock = clock or utc_now
        self._manager_factory = manager_factory or get_manager_factory(config.manager)
        self._manager: Optional[SecretStore] = None
        self.notifier = notifier or FailureNotifier(config, cache, clock=self.clock)

    @property
    def manager(self) -> SecretStore:
        """Lazy-initialize the remote secret store."""
        if self._manager is None:
            self._manager = self._manager_factory(self.config)
        return self._manager

    @property
    def project_tag(self) -> str:
        return self.config.project_tag

    @property
    def environment_tag(self) -> str:
        return environment_tag(self.config.environment, self.config.production_tag, self.config.production_environments)

    @property
    def is_local(self) -> bool:
        return is_local(self.config.environment, self.config.local_environments)

    def remote_name(self, key: str) -> str:
        return resolve_secret_name(self.config.secret_name_format, key, self.project_tag, self.environment_tag)

    def cache_key(self, key: str) -> str:
        return f"{self.config.cache_key_prefix}-{self.project_tag}-{key}"

    def backup_cache_key(self, key: str) -> str:
        return f"{self.cache_key(key)}-{BACKUP_SUFFIX}"

    def resolve_secrets(self, keys: SecretKeys) -> Union[Dict[str, SecretValue], SecretValue]:
        """
        Resolve one or many logical secret keys.

        Args:
            keys: A single key, or an iterable of keys

        Returns:
            For an iterable, a dict of key -> value with an empty dict for
            every key that couldn't be resolved. For a single key, that key's
            value itself (a bare primitive, or the secret's own mapping).
        """
        single = isinstance(keys, str)
        records = self._lookup([keys] if single else keys)
        if single:
            return records[keys].value
        return {key: record.value for key, record in records.items()}

    def resolve_secret(self, key: str) -> SecretValue:
        return self.resolve_secrets(key)

    def resolve_secret_records(self, keys: SecretKeys) -> List[Secret]:
        """Resolve keys like resolve_secrets, keeping the remote name and source of each value."""
        return list(self._lookup([keys] if isinstance(keys, str) else keys).values())

    def _lookup(self, keys: Iterable[str]) -> Dict[str, Secret]:
        keys = list(dict.fromkeys(keys))
        records = {key: Secret(key=key, name=self.remote_name(key), value={}, source=UNRESOLVED_SOURCE) for key in keys}

        try:
            for key in keys:
                try:
                    records[key] = self._resolve_one(key)
                except SecretsRetrievalError as e:
                    self.notifier.notify(str(e), key)
                    backup = self._from_backup(key)
                    if backup is not None:
                        records[key] = backup
        except Exception as e:
            # The store itself failed; remaining keys are abandoned for this batch
            logger.debug(f"Secret batch aborted: {e}")
            self.notifier.notify(str(e))

        return records

    def _resolve_one(self, key: str) -> Secret:
        name = self.remote_name(key)
        cache_key = self.cache_key(key)
        if self.cache.exists(cache_key):
            logger.debug(f"Cache hit for secret '{key}'")
            return Secret(key=key, name=name, value=self._cached(cache_key), source="cache")

        # No bulk retrieval; one remote call per key
        logger.debug(f"Cache miss for secret '{key}', fetching '{name}' from {self.config.manager}")
        value = self.manager.fetch_secret(name)
        self._store(key, value)
        return Secret(key=key, name=name, value=value, source=self.config.manager)

    def _store(self, key: str, value: SecretValue) -> None:
        now = self.clock()
        # Each tier holds its own copy; callers never share an object with the cache
        self.cache.set_if_absent(self.cache_key(key), copy.deepcopy(value), now + self.config.regular_interval)
        self.cache.set_if_absent(self.backup_cache_key(key), copy.deepcopy(value), now + self.config.backup_interval)

    def _cached(self, cache_key: str) -> SecretValue:
        return copy.deepcopy(self.cache.get(cache_key))

    def _from_backup(self, key: str) -> Optional[Secret]:
        backup_key = self.backup_cache_key(key)
        if not self.config.backup_fallback or not self.cache.exists(backup_key):
            return None
        logger.warning(f"Using backup cache entry for secret '{key}'")
        return Secret(key=key, name=self.remote_name(key), value=self._cached(backup_key), source="backup")


def build_secret_cache(
    config: Optional[SecretsDriverConfig] = None,
    cache: Optional[ExpiringCache] = None,
    clock: Optional[Clock] = None,
    manager_factory: Optional[ManagerFactory] = None,
) -> SecretCache:
    """
    Wire a SecretCache from settings.

    The manager identifier is validated here, so a misconfigured backend
    fails at startup rather than on first use.

    Raises:
        ConfigError: If the settings are invalid or name an unknown manager
    """
    if config is None:
        config = load_config()
    if manager_factory is None:
        manager_factory = get_manager_factory(config.manager)
    if cache is None:
        cache = InMemoryExpiringCache(maxsize=config.cache_size, clock=clock)
    return SecretCache(config, cache, manager_factory=manager_factory, clock=clock)
