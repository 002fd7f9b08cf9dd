"""
Tenant-scoped read-through cache on top of Redis.

Redis is optional infrastructure: when it cannot be reached every operation
degrades to a miss or a no-op and the caller falls back to the database.
Keys always start with the tenant namespace: ``{namespace}:{resource}[:{qualifier}]``.
"""
import json
import logging
import threading
import time
from typing import Any, Callable, Optional

import redis

from chefwell.core.errors import TransientCacheError
from chefwell.core.namespace import validate_namespace


logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_BACKOFF_MS = 2000
# Minimum gap between passive reconnection attempts made by regular operations
RECONNECT_INTERVAL_SECONDS = 5.0
# redis-py also raises ValueError for a malformed URL and UnicodeDecodeError
# (a ValueError) for a reply it cannot decode
CLIENT_ERRORS = (redis.RedisError, ValueError)


def cache_key(namespace: str, resource: str, qualifier: Optional[str] = None) -> str:
    validate_namespace(namespace)
    if not resource:
        raise ValueError("cache resource is required")
    if qualifier:
        return f"{namespace}:{resource}:{qualifier}"
    return f"{namespace}:{resource}"


def cache_pattern(namespace: str, resource: Optional[str] = None) -> str:
    validate_namespace(namespace)
    if resource:
        return f"{namespace}:{resource}:*"
    return f"{namespace}:*"


def backoff_seconds(attempt: int, max_backoff_ms: int = DEFAULT_MAX_BACKOFF_MS) -> float:
    return min(attempt * 100, max_backoff_ms) / 1000.0


class CacheLayer:
    def __init__(
        self,
        url: Optional[str] = None,
        client_factory: Optional[Callable[[], Any]] = None,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_backoff_ms: int = DEFAULT_MAX_BACKOFF_MS,
        reconnect_interval: float = RECONNECT_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if client_factory is None and url is None:
            raise ValueError("either url or client_factory is required")
        self._client_factory = client_factory or (
            lambda: redis.Redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        )
        self.default_ttl = default_ttl
        self.max_retries = max_retries
        self.max_backoff_ms = max_backoff_ms
        self.reconnect_interval = reconnect_interval
        self._sleep = sleep
        self._clock = clock

        self._client = None
        self._available = False
        self._last_attempt: Optional[float] = None
        self._last_error: Optional[Exception] = None
        self._lock = threading.Lock()

    def connect(self) -> bool:
        """
        Connect with bounded exponential backoff.

        One initial attempt plus up to ``max_retries`` retries, waiting
        ``min(attempt * 100ms, max_backoff_ms)`` before each retry. Gives up
        silently; the cache then reports unavailable.
        """
        last_error: Optional[Exception] = None
        for attempt in range(0, self.max_retries + 1):
            if attempt:
                self._sleep(backoff_seconds(attempt, self.max_backoff_ms))
            if self._try_connect():
                logger.info("Redis: cache enabled")
                return True
            last_error = self._last_error
        logger.warning(
            "Redis: unavailable after %d retries, continuing without cache (%s)",
            self.max_retries,
            last_error,
        )
        return False

    def is_available(self) -> bool:
        return self._available

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self._run("get", key, lambda client: client.get(key))
        except TransientCacheError:
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Redis: discarding undecodable entry %s", key)
            return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = ttl_seconds or self.default_ttl
        try:
            payload = json.dumps(value, default=str)
        except (TypeError, ValueError):
            logger.warning("Redis: value for %s is not serializable, skipping", key)
            return
        try:
            self._run("set", key, lambda client: client.setex(key, ttl, payload))
        except TransientCacheError:
            return

    def invalidate(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern under one tenant.

        The first segment must be a valid namespace, so a pattern can never
        reach keys of another tenant (``*:products:*`` is rejected).
        """
        validate_namespace(pattern.split(":", 1)[0])

        def _delete(client) -> int:
            keys = list(client.scan_iter(match=pattern, count=500))
            if not keys:
                return 0
            return client.delete(*keys)

        try:
            removed = self._run("invalidate", pattern, _delete)
        except TransientCacheError:
            return 0
        if removed:
            logger.info("Cache: %s key(s) invalidated for %s", removed, pattern)
        return removed

    def get_or_set(self, key: str, loader: Callable[[], Any], ttl_seconds: Optional[int] = None) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        self.set(key, value, ttl_seconds)
        return value

    def close(self) -> None:
        with self._lock:
            client, self._client = self._client, None
            self._available = False
        if client is not None:
            try:
                client.close()
                logger.info("Redis: disconnected")
            except CLIENT_ERRORS as exc:
                logger.warning("Redis: error while disconnecting: %s", exc)

    def _try_connect(self) -> bool:
        self._last_attempt = self._clock()
        self._last_error = None
        try:
            client = self._client_factory()
            client.ping()
        except CLIENT_ERRORS as exc:
            self._last_error = exc
            with self._lock:
                self._client = None
                self._available = False
            return False
        with self._lock:
            self._client = client
            self._available = True
        return True

    def _client_or_reconnect(self):
        if self._available and self._client is not None:
            return self._client
        now = self._clock()
        if self._last_attempt is not None and now - self._last_attempt < self.reconnect_interval:
            return None
        if self._try_connect():
            logger.info("Redis: reconnected")
            return self._client
        return None

    def _run(self, operation: str, target: str, fn: Callable[[Any], Any]) -> Any:
        client = self._client_or_reconnect()
        if client is None:
            raise TransientCacheError("cache unavailable")
        try:
            return fn(client)
        except CLIENT_ERRORS as exc:
            with self._lock:
                self._available = False
            logger.warning("Redis: %s failed for %s: %s", operation, target, exc)
            raise TransientCacheError(str(exc)) from exc
