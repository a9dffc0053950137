"""
Cache backend capability.

Every concrete backend (line protocol, HTTP, managed) implements this
interface; the benchmark harness depends on nothing else.
"""

from abc import ABC, abstractmethod
from typing import Optional


class CacheBackend(ABC):
    """
    Uniform get/set capability over a remote cache.

    ``get`` returns the stored value or ``None`` for a miss; a miss is a
    normal result, never an exception. ``set`` returns the backend's
    acknowledgement or raises a CacheBackendError subclass.

    Backends are async context managers; leaving the context releases
    their connections.
    """

    #: Identifier used in latency samples and reports
    name: str = "backend"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key`` or None when absent."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> str:
        """
        Store ``value`` under ``key`` for ``ttl`` seconds.

        ``ttl=None`` applies the backend's default expiry (60 s unless
        the remote side is configured otherwise).
        """

    async def close(self) -> None:
        """Release network resources. Safe to call more than once."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
