# cache_service.py
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from errors import CacheUnavailable
from helpers import _now

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300

_CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


class CacheStore:
    """Best-effort Redis key/value cache.

    ``get`` and ``set`` never raise. After ``max_failures`` consecutive
    connection failures the store switches itself off and every call becomes a
    miss / no-op. While off it sends a PING at most once per
    ``retry_interval`` seconds and switches back on when one succeeds.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        *,
        enabled: bool = True,
        default_ttl: int = DEFAULT_TTL,
        max_failures: int = 3,
        retry_interval: float = 30.0,
        socket_timeout: float = 0.5,
        client: Optional[redis.Redis] = None,
    ):
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.default_ttl = default_ttl
        self.max_failures = max_failures
        self.retry_interval = retry_interval
        self.socket_timeout = socket_timeout
        self._client = client
        self._configured = enabled
        self._enabled = enabled
        self._failures = 0
        self._disabled_at: Optional[float] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "CacheStore":
        return cls(
            host=config.get("REDIS_HOST", "localhost"),
            port=int(config.get("REDIS_PORT", 6379)),
            db=int(config.get("REDIS_DB", 0)),
            password=config.get("REDIS_PASSWORD"),
            enabled=bool(config.get("CACHE_ENABLED", True)),
            default_ttl=int(config.get("CACHE_TTL_SECONDS", DEFAULT_TTL)),
            max_failures=int(config.get("CACHE_MAX_FAILURES", 3)),
            retry_interval=float(config.get("CACHE_RETRY_INTERVAL", 30.0)),
            socket_timeout=float(config.get("CACHE_SOCKET_TIMEOUT", 0.5)),
        )

    # -------- connection lifecycle --------
    @property
    def enabled(self) -> bool:
        return self._enabled

    def status(self) -> Dict[str, Any]:
        return {"enabled": self._enabled, "failures": self._failures}

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
                retry_on_timeout=False,
                decode_responses=True,
            )
        return self._client

    def _on_connected(self):
        if not self._enabled:
            logger.info("Redis reachable again at %s:%s, caching re-enabled", self.host, self.port)
        self._enabled = True
        self._failures = 0
        self._disabled_at = None

    def _on_connection_error(self, err: Exception):
        self._failures += 1
        logger.warning("Redis connection error (%d/%d): %s", self._failures, self.max_failures, err)
        if self._enabled and self._failures >= self.max_failures:
            self._enabled = False
            self._disabled_at = _now()
            logger.warning("Redis connection failed, disabled caching")

    def _ensure_available(self) -> redis.Redis:
        """Return the client, or raise CacheUnavailable while switched off."""
        if not self._configured:
            raise CacheUnavailable("cache disabled by configuration")
        if not self._enabled:
            if self._disabled_at is not None and _now() - self._disabled_at < self.retry_interval:
                raise CacheUnavailable("cache disabled after repeated connection failures")
            self._probe()
            if not self._enabled:
                raise CacheUnavailable("Redis still unreachable")
        return self._get_client()

    def _probe(self):
        try:
            self._get_client().ping()
        except _CONNECTION_ERRORS as e:
            self._disabled_at = _now()
            logger.debug("Redis probe failed: %s", e)
        except RedisError as e:
            self._disabled_at = _now()
            logger.warning("Redis probe error: %s", e)
        else:
            self._on_connected()

    # -------- public API --------
    def get(self, key: str) -> Optional[str]:
        try:
            client = self._ensure_available()
            value = client.get(key)
        except CacheUnavailable:
            return None
        except _CONNECTION_ERRORS as e:
            self._on_connection_error(e)
            return None
        except RedisError as e:
            logger.error("Redis get error: %s", e)
            return None
        self._on_connected()
        return value

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        ttl = int(ttl_seconds or self.default_ttl)
        try:
            client = self._ensure_available()
            client.setex(key, ttl, value)
        except CacheUnavailable:
            return
        except _CONNECTION_ERRORS as e:
            self._on_connection_error(e)
            return
        except RedisError as e:
            logger.error("Redis set error: %s", e)
            return
        self._on_connected()
