"""
HTTP-fronted cache backend.

Wire contract of the remote cache service:
    POST {base}/set   JSON {"key": str, "value": str, "ttl": int}  -> 2xx
    GET  {base}/get?key=<urlencoded key>                           -> 2xx

The service answers a GET hit with {"key": ..., "value": ...} and a miss
with {"error": "Key not found"}. Any non-2xx status is a hard failure; the
body is not inspected.
"""

import json
import logging
from typing import Optional

import httpx

from .base import CacheBackend
from ..config.settings import settings
from ..errors import CallTimeout, ConnectFailure, ProtocolFailure, RemoteFailure

logger = logging.getLogger(__name__)


class HttpCacheClient(CacheBackend):
    """
    CacheBackend over HTTP using a pooled httpx.AsyncClient.

    httpx keeps its own connection pool, so one instance is safe to share
    between concurrent tasks without extra locking.

    Attributes:
        base_url: Root URL of the cache service
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: str = None,
        *,
        timeout: float = None,
        name: str = "http",
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.HTTP_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self.name = name
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> str:
        ttl = ttl if ttl is not None else settings.DEFAULT_TTL
        response = await self._request(
            "POST", "/set", json={"key": key, "value": value, "ttl": ttl}
        )
        return response.text

    async def get(self, key: str) -> Optional[str]:
        response = await self._request("GET", "/get", params={"key": key})
        return self._decode_value(response.text)

    def _decode_value(self, body: str) -> Optional[str]:
        """Unwrap the service's JSON envelope; an empty body is a miss."""
        if not body.strip():
            return None
        try:
            payload = json.loads(body)
        except ValueError:
            return body

        if isinstance(payload, dict):
            if "value" in payload:
                value = payload["value"]
                return value if isinstance(value, str) else json.dumps(value)
            if "error" in payload:
                return None
        return body

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            if isinstance(exc, httpx.ConnectTimeout):
                raise ConnectFailure(
                    f"connect to {self.base_url} timed out", backend=self.name
                ) from exc
            raise CallTimeout(
                f"{method} {path} timed out after {self.timeout}s", backend=self.name
            ) from exc
        except httpx.ConnectError as exc:
            raise ConnectFailure(
                f"connect to {self.base_url} failed: {exc}", backend=self.name
            ) from exc
        except httpx.TransportError as exc:
            raise ProtocolFailure(f"{method} {path} failed: {exc}", backend=self.name) from exc

        if not response.is_success:
            logger.debug(f"{method} {path} returned {response.status_code}")
            raise RemoteFailure(
                f"{method} {path} returned HTTP {response.status_code}",
                backend=self.name,
                status_code=response.status_code,
            )
        return response

    async def close(self) -> None:
        await self._client.aclose()
