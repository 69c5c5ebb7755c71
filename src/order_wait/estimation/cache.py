"""Short-lived caches for base prep minutes.

Two backends share the same ``get_or_compute`` contract:
1. PrepTimeCache: in-process map guarded by a lock (default)
2. RedisPrepTimeCache: shared across worker processes, expiry handled by Redis

Sampling history costs a query per poll, while the answer barely moves
within a couple of minutes, so results are memoised per merchant and
order type.
"""

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import redis

from order_wait.config import Settings, settings

logger = logging.getLogger(__name__)


def make_cache_key(merchant_id: int, order_type: str) -> str:
    return f"{merchant_id}:{order_type}"


@dataclass(frozen=True)
class CacheEntry:
    value: int
    expires_at: float


class PrepTimeCache:
    """
    In-memory TTL cache with a hard size ceiling.

    Lookups and writes are two separate critical sections: the lock is
    released while ``compute_fn`` runs, so two threads missing on the same
    key may both compute. The last write wins and the map is never left
    half-updated.

    When an insert pushes the entry count past ``max_entries`` the whole map
    is dropped rather than evicting individual keys.
    """

    def __init__(
        self,
        ttl_seconds: float = 120,
        max_entries: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, merchant_id: int, order_type: str) -> int | None:
        """Return the live cached value, or None."""
        key = make_cache_key(merchant_id, order_type)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at > self._clock():
                return entry.value
        return None

    def put(self, merchant_id: int, order_type: str, value: int) -> None:
        """Store ``value``, replacing any previous entry for the key."""
        key = make_cache_key(merchant_id, order_type)
        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock() + self.ttl_seconds)
            if len(self._entries) > self.max_entries:
                logger.info(
                    "Prep-time cache exceeded %d entries, resetting",
                    self.max_entries,
                )
                self._entries = {}

    def get_or_compute(
        self,
        merchant_id: int,
        order_type: str,
        compute_fn: Callable[[], int],
    ) -> int:
        cached = self.get(merchant_id, order_type)
        if cached is not None:
            return cached

        value = compute_fn()
        self.put(merchant_id, order_type, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries = {}


class RedisPrepTimeCache:
    """
    Prep-time cache stored in Redis.

    Keys are ``<prefix>:<merchant_id>:<order_type>`` and expire via SETEX.
    Redis failures never fail an estimate: the value is computed and
    returned uncached.
    """

    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: int = 120,
        key_prefix: str = "prep_minutes",
    ):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def _make_key(self, merchant_id: int, order_type: str) -> str:
        return f"{self.key_prefix}:{make_cache_key(merchant_id, order_type)}"

    def get(self, merchant_id: int, order_type: str) -> int | None:
        data = self.client.get(self._make_key(merchant_id, order_type))
        if data is None:
            return None
        return int(json.loads(data)["value"])

    def put(self, merchant_id: int, order_type: str, value: int) -> None:
        serialized = json.dumps(
            {"value": value, "updated_at": datetime.now(timezone.utc).isoformat()}
        )
        self.client.setex(
            self._make_key(merchant_id, order_type), self.ttl_seconds, serialized
        )

    def get_or_compute(
        self,
        merchant_id: int,
        order_type: str,
        compute_fn: Callable[[], int],
    ) -> int:
        try:
            cached = self.get(merchant_id, order_type)
        except redis.RedisError as e:
            logger.warning("Redis read failed, computing uncached: %s", e)
            return compute_fn()
        except (ValueError, KeyError, TypeError) as e:
            # Unreadable payload: treat as a miss and overwrite it below.
            logger.warning("Discarding malformed cached prep time: %s", e)
            cached = None

        if cached is not None:
            return cached

        value = compute_fn()
        try:
            self.put(merchant_id, order_type, value)
        except redis.RedisError as e:
            logger.warning("Redis write failed: %s", e)
        return value

    def close(self) -> None:
        self.client.close()


def build_prep_time_cache(
    config: Settings | None = None,
) -> PrepTimeCache | RedisPrepTimeCache:
    """Create the configured cache backend, falling back to memory if Redis is down."""
    config = config or settings

    if config.cache_backend == "redis":
        client = redis.Redis(
            host=config.redis_host,
            port=config.redis_port,
            decode_responses=True,
        )
        try:
            client.ping()
        except (redis.ConnectionError, redis.TimeoutError):
            logger.warning(
                "Redis not available at %s:%s, using in-memory prep-time cache",
                config.redis_host,
                config.redis_port,
            )
            client.close()
        else:
            return RedisPrepTimeCache(client, ttl_seconds=config.cache_ttl_seconds)

    return PrepTimeCache(
        ttl_seconds=config.cache_ttl_seconds,
        max_entries=config.cache_max_entries,
    )
