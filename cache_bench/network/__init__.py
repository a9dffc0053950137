"""Network module for cache-bench."""

from .tcp_server import CacheServer, run_server

__all__ = ["CacheServer", "run_server"]
