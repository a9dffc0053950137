"""
Error taxonomy for cache backends and the benchmark harness.

Backends translate library exceptions (OSError, httpx, redis) into these
types so the harness can treat every backend the same way. A cache miss is
never an error: ``get`` returns ``None``.
"""

from typing import Optional


class CacheBackendError(Exception):
    """Base exception for a failed cache call."""

    def __init__(self, message: str, backend: Optional[str] = None):
        self.backend = backend
        super().__init__(f"[{backend}] {message}" if backend else message)


class ConnectFailure(CacheBackendError):
    """Connection establishment failed (refused, DNS, connect timeout)."""


class ProtocolFailure(CacheBackendError):
    """Malformed, truncated or oversized response; the connection is faulted."""


class RemoteFailure(CacheBackendError):
    """The remote side answered with an error (non-2xx, ERROR reply)."""

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code
        super().__init__(message, backend)


class CallTimeout(RemoteFailure):
    """A call did not complete within its deadline."""


class BenchmarkError(Exception):
    """Base exception for a benchmark invocation that failed as a whole."""


class BenchmarkAborted(BenchmarkError):
    """Raised under the abort policy when an iteration fails."""

    def __init__(self, backend: str, operation: str, index: int, cause: BaseException):
        self.backend = backend
        self.operation = operation
        self.index = index
        self.cause = cause
        super().__init__(
            f"{operation} #{index} against {backend} failed: {cause}"
        )
