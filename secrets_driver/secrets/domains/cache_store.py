"""Expiring key/value cache used for secret data and notification sentinels."""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, NamedTuple, Optional, Protocol

from cachetools import TLRUCache

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExpiringCache(Protocol):
    """Key/value store where every entry carries its own expiry instant."""

    def exists(self, key: str) -> bool:
        ...

    def get(self, key: str) -> Any:
        ...

    def set_if_absent(self, key: str, value: Any, expires_at: datetime) -> bool:
        """Store value unless an unexpired entry already exists; return True if stored."""
        ...


class _Entry(NamedTuple):
    value: Any
    expires: float


def _entry_expiry(_key: str, entry: _Entry, _now: float) -> float:
    return entry.expires


class InMemoryExpiringCache:
    """
    Per-process ExpiringCache backed by cachetools.TLRUCache.

    Each entry expires at the instant given when it was stored. When the
    cache is full, the least recently used entry is evicted.
    """

    def __init__(self, maxsize: int = 1024, clock: Optional[Clock] = None):
        self._clock = clock or utc_now
        self._cache = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=self._timestamp)

    def _timestamp(self) -> float:
        return self._clock().timestamp()

    def exists(self, key: str) -> bool:
        return key in self._cache

    def get(self, key: str) -> Any:
        entry = self._cache.get(key)
        return None if entry is None else entry.value

    def set_if_absent(self, key: str, value: Any, expires_at: datetime) -> bool:
        if key in self._cache:
            logger.debug(f"Cache entry '{key}' already present, not overwritten")
            return False
        self._cache[key] = _Entry(value, expires_at.timestamp())
        return key in self._cache

    def forget(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        self._cache.expire()
        return len(self._cache)
