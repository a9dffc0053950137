"""
Cache-Bench Configuration Settings

This module contains the configuration defaults for the benchmark harness,
the cache backends and the reference line-protocol server. Every value can
be overridden through a CACHE_BENCH_* environment variable; the command
line entry points override them again through their flags.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Benchmark and backend configuration settings."""

    # Line-protocol endpoint (client side) / bind address (server side)
    HOST: str = os.environ.get("CACHE_BENCH_HOST", "localhost")
    PORT: int = int(os.environ.get("CACHE_BENCH_PORT", "6060"))

    # HTTP cache service
    HTTP_URL: str = os.environ.get("CACHE_BENCH_HTTP_URL", "http://localhost:6060")
    HTTP_TIMEOUT: float = float(os.environ.get("CACHE_BENCH_HTTP_TIMEOUT", "5.0"))

    # Managed distributed cache
    REDIS_URL: str = os.environ.get("CACHE_BENCH_REDIS_URL", "redis://localhost:6379/0")
    REDIS_INSTANCE: str = os.environ.get("CACHE_BENCH_REDIS_INSTANCE", "test")

    # Cache entry settings
    DEFAULT_TTL: int = 60
    MAX_KEY_LENGTH: int = 256

    # Connection settings
    CONNECT_TIMEOUT: float = float(os.environ.get("CACHE_BENCH_CONNECT_TIMEOUT", "5.0"))
    READ_TIMEOUT: float = float(os.environ.get("CACHE_BENCH_READ_TIMEOUT", "5.0"))
    MAX_FRAME_SIZE: int = 1024 * 1024  # Largest reply/request line in bytes
    POOL_SIZE: int = int(os.environ.get("CACHE_BENCH_POOL_SIZE", "8"))

    # Benchmark settings
    ITERATIONS: int = int(os.environ.get("CACHE_BENCH_ITERATIONS", "10000"))
    BENCHMARK_KEY: str = os.environ.get("CACHE_BENCH_KEY", "weathers")
    CALL_TIMEOUT: float = float(os.environ.get("CACHE_BENCH_CALL_TIMEOUT", "10.0"))
    BARRIER_TIMEOUT: float = float(os.environ.get("CACHE_BENCH_BARRIER_TIMEOUT", "300.0"))

    # Reference server settings
    CLEANUP_INTERVAL: int = 60  # Seconds between active expiry sweeps

    # Logging settings
    DEBUG: bool = os.environ.get("CACHE_BENCH_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("CACHE_BENCH_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
