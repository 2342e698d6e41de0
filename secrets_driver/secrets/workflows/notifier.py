"""Throttled failure notifications for secret retrieval."""
import logging
from typing import Optional

from ..domains.cache_store import Clock, ExpiringCache, utc_now
from ..domains.config_loader import SecretsDriverConfig
from ..domains.name_resolver import environment_tag

logger = logging.getLogger(__name__)

# Failure notifications are routed to their own logger so they can be shipped separately
notification_logger = logging.getLogger("secrets_driver.notifications")

GENERAL_KEY = "general"
SENT_SENTINEL = "sent"


class FailureNotifier:
    """
    Logs secret retrieval failures at most once per notification interval.

    A sentinel entry in the expiring cache, keyed by the secret key (or
    "general" for subsystem failures), marks that a notification was sent.
    While it is present, further notifications for that key are dropped.
    """

    def __init__(
        self,
        config: SecretsDriverConfig,
        cache: ExpiringCache,
        clock: Optional[Clock] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.cache = cache
        self.clock = clock or utc_now
        self.log = log or notification_logger

    def cache_key(self, key: Optional[str] = None) -> str:
        return f"{self.config.notification_cache_key_prefix}-{self.config.project_tag}-{key or GENERAL_KEY}"

    def message(self, reason: str, key: Optional[str] = None) -> str:
        project = self.config.project_tag
        env = environment_tag(self.config.environment, self.config.production_tag, self.config.production_environments)
        if key is None:
            return f"Could not retrieve external secret data for project '{project}' on environment '{env}' - {reason}"
        return (
            f"Could not retrieve external secret data for key '{key}' "
            f"for project '{project}' on environment '{env}' - {reason}"
        )

    def notify(self, reason: str, key: Optional[str] = None) -> bool:
        """
        Log a retrieval failure unless one was logged for this key recently.

        Args:
            reason: Failure description
            key: Logical secret key, or None for a subsystem failure

        Returns:
            True if the failure was logged, False if it was suppressed
        """
        cache_key = self.cache_key(key)
        if self.cache.exists(cache_key):
            logger.debug(f"Notification for '{key or GENERAL_KEY}' suppressed")
            return False

        self.cache.set_if_absent(cache_key, SENT_SENTINEL, self.clock() + self.config.notification_interval)
        self.log.log(self.config.log_level, self.message(reason, key))
        return True
