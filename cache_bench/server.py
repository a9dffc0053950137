#!/usr/bin/env python3
"""
Reference Cache Server Entry Point

Runs the line-protocol cache process the "line" backend talks to.

Usage:
    cache-bench-server                      # Default settings (localhost:6060)
    cache-bench-server --port 7070          # Custom port
    cache-bench-server --host 0.0.0.0       # Listen on all interfaces
    cache-bench-server --debug              # Enable debug logging

Environment Variables:
    CACHE_BENCH_HOST    - Server bind address
    CACHE_BENCH_PORT    - Server port
    CACHE_BENCH_DEBUG   - Enable debug mode (true/false)
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from .cache.store import TTLStore
from .cli import setup_logging
from .config.settings import settings
from .network.tcp_server import CacheServer


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Reference line-protocol cache server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Host address to bind to",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Port number to listen on",
    )
    parser.add_argument(
        "--default-ttl",
        type=int,
        default=settings.DEFAULT_TTL,
        help="TTL in seconds applied to plain SET requests",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


async def serve(server: CacheServer) -> None:
    """Run the server until SIGINT/SIGTERM."""
    logger = logging.getLogger(__name__)
    loop = asyncio.get_running_loop()
    task = asyncio.create_task(server.start())

    # Register signal handlers (Unix only)
    if sys.platform != 'win32':
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, task.cancel)

    try:
        await task
    except asyncio.CancelledError:
        logger.info("Shutdown requested")
    finally:
        await server.stop()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the server."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    server = CacheServer(
        host=args.host,
        port=args.port,
        store=TTLStore(default_ttl=args.default_ttl),
    )

    logger.info("Starting reference cache server")
    logger.info(f"  Host: {args.host}")
    logger.info(f"  Port: {args.port}")
    logger.info(f"  Default TTL: {args.default_ttl}s")

    try:
        asyncio.run(serve(server))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        logger.info("Server shutdown complete")


if __name__ == "__main__":
    main()
