"""
Cache tier

Key/value store with a time-to-live per entry. Two backends are provided:

- InMemoryCache: process local, guarded by a lock. Default, and what the
  tests run against.
- RedisCache: shared Redis instance through redis-py.

Besides plain put/get/evict, backends offer two operations for callers
that race with each other:

- put_if_newer(): store a value tagged with a version, unless the cache
  already holds the same or a newer version of it
- tombstone(): replace an entry with a short lived marker that reads as
  a miss and makes every put_if_newer() on that key fail until it expires

Backends raise CacheUnavailable for any failure of the backend itself
(connection refused, socket timeout, ...). Callers decide whether that is
fatal; the file storage service treats it as a cache miss.

The process wide cache is created at startup with init_cache() and
released at shutdown with close_cache().
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import timedelta
from typing import NamedTuple

import redis
from redis.exceptions import RedisError
from pydantic import BaseModel, Field

from core.config import Settings

logger = logging.getLogger(__name__)


class CacheUnavailable(Exception):
    """The cache backend could not serve the request"""


class CacheConfig(BaseModel):
    """
    TTL configuration for the cache tier.

    default_ttl applies to any namespace without its own entry in
    namespace_ttls. max_entries caps the in-memory backend (None: no cap).
    """
    default_ttl: timedelta = timedelta(minutes=10)
    namespace_ttls: dict[str, timedelta] = Field(default_factory=dict)
    tombstone_ttl: timedelta = timedelta(seconds=30)
    max_entries: int | None = None

    def ttl_for(self, namespace: str) -> timedelta:
        return self.namespace_ttls.get(namespace, self.default_ttl)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheConfig":
        return cls(
            default_ttl=settings.cache_default_ttl,
            namespace_ttls=settings.cache_namespace_ttls,
            tombstone_ttl=settings.cache_tombstone_ttl,
            max_entries=settings.CACHE_MAX_ENTRIES,
        )


def cache_key(namespace: str, key: object) -> str:
    """Build the storage key for an entry, e.g. 'file::<uuid>'"""
    return f"{namespace}::{key}"


class CacheBackend(ABC):
    """Interface every cache backend implements"""

    def __init__(self, config: CacheConfig | None = None):
        self.config = config or CacheConfig()

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the cached value, or None on a miss, expired entry or tombstone"""

    @abstractmethod
    def put(self, key: str, value: str, ttl: timedelta) -> None:
        """Store value under key, replacing any previous value"""

    @abstractmethod
    def put_if_newer(self, key: str, value: str, version: int, ttl: timedelta) -> bool:
        """
        Store value under key unless a live entry with the same or a higher
        version, or a live tombstone, is present. The check and the write
        are atomic. Returns True if the value was stored.
        """

    @abstractmethod
    def tombstone(self, key: str) -> None:
        """Replace key with a tombstone that lives for config.tombstone_ttl"""

    @abstractmethod
    def evict(self, key: str) -> None:
        """Remove key, tombstones included. Evicting an absent key is a no-op."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry owned by this cache"""

    def close(self) -> None:
        """Release backend resources"""


class _Entry(NamedTuple):
    expires_at: float
    value: str | None  # None marks a tombstone
    version: int | None = None


class InMemoryCache(CacheBackend):
    """
    Dictionary backed cache.

    Expiry times come from a monotonic clock. Expired entries are dropped
    when read and swept on every write, so entries that are never read
    again do not accumulate. With config.max_entries set, the least
    recently used values are evicted once the cap is reached; tombstones
    are never evicted early.
    """

    def __init__(self, config: CacheConfig | None = None, clock=time.monotonic):
        super().__init__(config)
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()

    def _live_entry(self, key: str, now: float) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def _store(self, key: str, entry: _Entry, now: float) -> None:
        # Caller holds the lock
        self._entries[key] = entry
        self._entries.move_to_end(key)
        self._purge_expired(now)
        self._enforce_max_entries(keep=key)

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]

    def _enforce_max_entries(self, keep: str) -> None:
        limit = self.config.max_entries
        if limit is None:
            return
        overflow = len(self._entries) - limit
        if overflow <= 0:
            return
        victims = [
            key for key, entry in self._entries.items()
            if entry.value is not None and key != keep
        ]
        for key in victims[:overflow]:
            del self._entries[key]

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry(key, self._clock())
            if entry is None or entry.value is None:
                return None
            self._entries.move_to_end(key)
            return entry.value

    def put(self, key: str, value: str, ttl: timedelta) -> None:
        seconds = ttl.total_seconds()
        if seconds <= 0:
            # Nothing to keep; make sure an older value does not linger
            self.evict(key)
            return
        with self._lock:
            now = self._clock()
            self._store(key, _Entry(now + seconds, value), now)

    def put_if_newer(self, key: str, value: str, version: int, ttl: timedelta) -> bool:
        seconds = ttl.total_seconds()
        if seconds <= 0:
            return False
        with self._lock:
            now = self._clock()
            current = self._live_entry(key, now)
            if current is not None:
                if current.value is None:
                    return False
                if current.version is not None and current.version >= version:
                    return False
            self._store(key, _Entry(now + seconds, value, version), now)
            return True

    def tombstone(self, key: str) -> None:
        with self._lock:
            now = self._clock()
            expires_at = now + self.config.tombstone_ttl.total_seconds()
            self._store(key, _Entry(expires_at, None), now)

    def evict(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def held_entries(self) -> int:
        """Entries currently held in memory, expired ones and tombstones included"""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        """Number of live values"""
        with self._lock:
            now = self._clock()
            return sum(
                1 for entry in self._entries.values()
                if entry.expires_at > now and entry.value is not None
            )


class RedisCache(CacheBackend):
    """
    Redis backed cache.

    Keys are prefixed so clear() only touches entries this service wrote.
    Entries are written with an expiry, so Redis handles TTLs.

    Stored values carry a small header so put_if_newer() can compare
    versions inside Redis:

        |<value>            plain put()
        v<version>|<value>  put_if_newer()
        !                   tombstone
    """

    TOMBSTONE = "!"

    # KEYS[1] key, ARGV[1] version, ARGV[2] stored value, ARGV[3] ttl seconds
    PUT_IF_NEWER_SCRIPT = """
    local current = redis.call('GET', KEYS[1])
    if current then
        if current == '!' then
            return 0
        end
        local cached = tonumber(string.match(current, '^v(%d+)|'))
        if cached and cached >= tonumber(ARGV[1]) then
            return 0
        end
    end
    redis.call('SET', KEYS[1], ARGV[2], 'EX', ARGV[3])
    return 1
    """

    def __init__(
        self,
        client: redis.Redis,
        config: CacheConfig | None = None,
        key_prefix: str = "filestore",
    ):
        super().__init__(config)
        self.redis = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(
        cls,
        url: str,
        config: CacheConfig | None = None,
        timeout: float | None = None,
    ) -> "RedisCache":
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client, config=config)

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}" if self.key_prefix else key

    def get(self, key: str) -> str | None:
        try:
            data = self.redis.get(self._make_key(key))
        except RedisError as e:
            raise CacheUnavailable(f"Redis GET failed for {key}: {e}") from e
        if data is None:
            return None
        stored = data.decode("utf-8") if isinstance(data, bytes) else data
        if stored == self.TOMBSTONE:
            return None
        _, _, value = stored.partition("|")
        return value

    def put(self, key: str, value: str, ttl: timedelta) -> None:
        seconds = int(ttl.total_seconds())
        try:
            if seconds <= 0:
                self.redis.delete(self._make_key(key))
            else:
                self.redis.setex(self._make_key(key), seconds, f"|{value}")
        except RedisError as e:
            raise CacheUnavailable(f"Redis SETEX failed for {key}: {e}") from e

    def put_if_newer(self, key: str, value: str, version: int, ttl: timedelta) -> bool:
        seconds = int(ttl.total_seconds())
        if seconds <= 0:
            return False
        try:
            result = self.redis.eval(
                self.PUT_IF_NEWER_SCRIPT,
                1,
                self._make_key(key),
                version,
                f"v{version}|{value}",
                seconds,
            )
        except RedisError as e:
            raise CacheUnavailable(f"Redis versioned SET failed for {key}: {e}") from e
        return result == 1

    def tombstone(self, key: str) -> None:
        seconds = max(1, int(self.config.tombstone_ttl.total_seconds()))
        try:
            self.redis.setex(self._make_key(key), seconds, self.TOMBSTONE)
        except RedisError as e:
            raise CacheUnavailable(f"Redis SETEX failed for {key}: {e}") from e

    def evict(self, key: str) -> None:
        try:
            self.redis.delete(self._make_key(key))
        except RedisError as e:
            raise CacheUnavailable(f"Redis DEL failed for {key}: {e}") from e

    def clear(self) -> None:
        try:
            keys = list(self.redis.scan_iter(match=self._make_key("*")))
            if keys:
                self.redis.delete(*keys)
        except RedisError as e:
            raise CacheUnavailable(f"Redis clear failed: {e}") from e

    def close(self) -> None:
        self.redis.close()


def create_cache(settings: Settings) -> CacheBackend:
    """Build the cache backend selected by CACHE_BACKEND"""
    config = CacheConfig.from_settings(settings)
    backend = settings.CACHE_BACKEND.lower()
    if backend == "memory":
        return InMemoryCache(config)
    if backend == "redis":
        return RedisCache.from_url(
            settings.REDIS_URL, config=config, timeout=settings.CACHE_TIMEOUT
        )
    raise ValueError(f"Unknown CACHE_BACKEND '{settings.CACHE_BACKEND}'")


# Process wide cache, owned by the application lifespan
_cache: CacheBackend | None = None


def init_cache(settings: Settings) -> CacheBackend:
    """Create the process wide cache. Called once at startup."""
    global _cache
    if _cache is not None:
        close_cache()
    _cache = create_cache(settings)
    logger.info(
        "Cache initialized: backend=%s default_ttl=%s namespace_ttls=%s",
        type(_cache).__name__,
        _cache.config.default_ttl,
        _cache.config.namespace_ttls,
    )
    return _cache


def get_cache() -> CacheBackend:
    """
    Get the process wide cache.

    Raises:
        RuntimeError: If init_cache() has not been called
    """
    if _cache is None:
        raise RuntimeError("Cache not initialized. Call init_cache() first.")
    return _cache


def close_cache() -> None:
    """Release the process wide cache. Called at shutdown."""
    global _cache
    if _cache is None:
        return
    try:
        _cache.close()
    except RedisError as e:
        logger.warning("Error closing cache: %s", e)
    finally:
        _cache = None
