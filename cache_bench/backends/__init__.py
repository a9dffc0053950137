"""Cache backends for cache-bench."""

from typing import Callable, Dict

from .base import CacheBackend
from .http import HttpCacheClient
from .line_protocol import ConnectionState, LineProtocolClient, LineProtocolPool
from .managed import ManagedCacheClient
from ..config.settings import Settings, settings as default_settings


def _line(cfg: Settings) -> CacheBackend:
    return LineProtocolClient(
        cfg.HOST,
        cfg.PORT,
        connect_timeout=cfg.CONNECT_TIMEOUT,
        read_timeout=cfg.READ_TIMEOUT,
        max_frame_size=cfg.MAX_FRAME_SIZE,
    )


def _line_pool(cfg: Settings) -> CacheBackend:
    return LineProtocolPool(
        cfg.HOST,
        cfg.PORT,
        cfg.POOL_SIZE,
        connect_timeout=cfg.CONNECT_TIMEOUT,
        read_timeout=cfg.READ_TIMEOUT,
        max_frame_size=cfg.MAX_FRAME_SIZE,
    )


def _http(cfg: Settings) -> CacheBackend:
    return HttpCacheClient(cfg.HTTP_URL, timeout=cfg.HTTP_TIMEOUT)


def _managed(cfg: Settings) -> CacheBackend:
    return ManagedCacheClient(cfg.REDIS_URL, instance_name=cfg.REDIS_INSTANCE)


BACKEND_FACTORIES: Dict[str, Callable[[Settings], CacheBackend]] = {
    "line": _line,
    "line-pool": _line_pool,
    "http": _http,
    "managed": _managed,
}


def create_backend(kind: str, cfg: Settings = None) -> CacheBackend:
    """
    Build a backend by kind name ("line", "line-pool", "http", "managed").

    Raises:
        ValueError: for an unknown kind.
    """
    try:
        factory = BACKEND_FACTORIES[kind]
    except KeyError:
        raise ValueError(
            f"unknown backend {kind!r}; choose from {', '.join(BACKEND_FACTORIES)}"
        ) from None
    return factory(cfg if cfg is not None else default_settings)


__all__ = [
    "BACKEND_FACTORIES",
    "CacheBackend",
    "ConnectionState",
    "HttpCacheClient",
    "LineProtocolClient",
    "LineProtocolPool",
    "ManagedCacheClient",
    "create_backend",
]
