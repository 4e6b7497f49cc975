"""Redis connection and the JSON cache used by the catalog listings."""

import json
from typing import Any, cast

import redis
import structlog

from clinic_api.config import settings

logger = structlog.get_logger(__name__)

# Shared client, created on first use
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """
    Get or create the shared Redis client.

    ``REDIS_URL`` wins over the discrete host/port/credential settings.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    options: dict[str, Any] = {
        "decode_responses": settings.redis_decode_responses,
        "socket_connect_timeout": 5,
        "socket_keepalive": True,
        "health_check_interval": 30,
    }
    if settings.redis_url:
        _redis_client = redis.Redis.from_url(settings.redis_url, **options)
    else:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            username=settings.redis_username,
            password=settings.redis_password or None,
            **options,
        )
    return _redis_client


async def check_redis_connection() -> bool:
    """Ping Redis; False on any connection problem."""
    try:
        return bool(get_redis_client().ping())
    except Exception:
        return False


def close_redis_connection() -> None:
    """Close the shared client, if one was opened."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class CacheManager:
    """
    JSON values in Redis under an optional key namespace.

    Every operation fails open: a Redis outage reads as a cache miss and
    never fails the request that hit it.
    """

    def __init__(self, redis_client: redis.Redis, namespace: str | None = None):
        """Initialize cache manager with Redis client and key namespace."""
        self.redis = redis_client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    def get_json(self, key: str) -> Any | None:
        """Return the decoded value stored under ``key``, or None."""
        try:
            value = cast(str | None, self.redis.get(self._key(key)))
        except Exception as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None

        if not value:
            return None
        try:
            return json.loads(value)
        except ValueError:
            logger.warning("cache_value_corrupt", key=key)
            return None

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store ``value`` as JSON.

        Dates and decimals are stored as strings; response schemas parse
        them back.

        Returns:
            True if the value was written
        """
        payload = json.dumps(value, default=str)
        try:
            if ttl:
                self.redis.setex(self._key(key), ttl, payload)
            else:
                self.redis.set(self._key(key), payload)
        except Exception as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False
        return True

    def delete(self, key: str) -> bool:
        """Drop ``key``; True if Redis accepted the command."""
        try:
            self.redis.delete(self._key(key))
        except Exception as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False
        return True
