"""
Managed distributed-cache backend (Redis).

Keys are namespaced with the instance name so several benchmark setups can
share one Redis deployment.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from .base import CacheBackend
from ..config.settings import settings
from ..errors import CallTimeout, ConnectFailure, RemoteFailure

logger = logging.getLogger(__name__)


class ManagedCacheClient(CacheBackend):
    """
    CacheBackend over redis.asyncio.

    The redis client owns a connection pool and is safe for concurrent use.
    An existing client can be injected (tests, shared pools); otherwise one
    is created from ``url``.

    Attributes:
        url: Redis connection URL
        instance_name: Prefix applied to every key
    """

    def __init__(
        self,
        url: str = None,
        *,
        instance_name: str = None,
        name: str = "managed",
        client: "redis.Redis" = None,
    ):
        self.url = url if url is not None else settings.REDIS_URL
        self.instance_name = (
            instance_name if instance_name is not None else settings.REDIS_INSTANCE
        )
        self.name = name
        self._client = client if client is not None else redis.from_url(
            self.url, decode_responses=True
        )

    def _key(self, key: str) -> str:
        return f"{self.instance_name}{key}"

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> str:
        ttl = ttl if ttl is not None else settings.DEFAULT_TTL
        try:
            await self._client.set(self._key(key), value, ex=ttl)
        except RedisError as exc:
            raise self._translate(exc, "SET") from exc
        return "OK"

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self._client.get(self._key(key))
        except RedisError as exc:
            raise self._translate(exc, "GET") from exc
        if isinstance(value, bytes):
            value = value.decode('utf-8')
        return value

    def _translate(self, exc: RedisError, operation: str) -> Exception:
        if isinstance(exc, RedisTimeoutError):
            return CallTimeout(f"{operation} timed out: {exc}", backend=self.name)
        if isinstance(exc, RedisConnectionError):
            return ConnectFailure(f"cannot reach {self.url}: {exc}", backend=self.name)
        return RemoteFailure(f"{operation} failed: {exc}", backend=self.name)

    async def close(self) -> None:
        logger.debug(f"Closing redis client for {self.url}")
        await self._client.aclose()
