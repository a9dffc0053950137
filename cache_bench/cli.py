#!/usr/bin/env python3
"""
Cache-Bench Command Line

Measures get/set latency of one or more cache backends and prints
min/max/average per backend and operation.

Usage:
    cache-bench                                       # line + http, set & get
    cache-bench --backend line --backend managed      # Pick backends
    cache-bench --mode concurrent -n 10000            # Fan-out load
    cache-bench --mode concurrent --concurrency 64    # Bounded fan-out
    cache-bench --output results.json                 # Save results

Environment Variables:
    CACHE_BENCH_HOST / CACHE_BENCH_PORT   - line-protocol endpoint
    CACHE_BENCH_HTTP_URL                  - HTTP cache service
    CACHE_BENCH_REDIS_URL                 - managed cache
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from contextlib import AsyncExitStack
from typing import List, Optional

from .backends import BACKEND_FACTORIES, create_backend
from .benchmark import (
    BenchmarkHarness,
    BenchmarkReport,
    ExecutionMode,
    FailurePolicy,
    Operation,
    ResultReporter,
)
from .config.settings import Settings, settings
from .errors import BenchmarkError
from .protocol.commands import Command, CommandType
from .protocol.parser import ProtocolParser

logger = logging.getLogger(__name__)

# Sample record cached by every benchmark run unless --value is given
DEFAULT_VALUE = json.dumps({"Temperature": 25, "Humidity": 60, "Condition": "Sunny"})


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Compare get/set latency of cache backends",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--backend", "-b",
        action="append",
        choices=sorted(BACKEND_FACTORIES),
        help="Backend to benchmark (repeatable; default: line and http)",
    )
    parser.add_argument(
        "--operation",
        choices=["get", "set", "both"],
        default="both",
        help="Operation(s) to measure",
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ExecutionMode],
        default=ExecutionMode.SEQUENTIAL.value,
        help="Issue calls one at a time or all at once",
    )
    parser.add_argument(
        "--iterations", "-n",
        type=int,
        default=settings.ITERATIONS,
        help="Calls per backend and operation",
    )
    parser.add_argument(
        "--concurrency", "-c",
        type=int,
        default=None,
        help="Max in-flight calls in concurrent mode (default: unbounded)",
    )
    parser.add_argument(
        "--failure-policy",
        choices=[policy.value for policy in FailurePolicy],
        default=FailurePolicy.EXCLUDE.value,
        help="What a failed call does to the run",
    )
    parser.add_argument("--key", default=settings.BENCHMARK_KEY, help="Cache key")
    parser.add_argument("--value", default=DEFAULT_VALUE, help="Cached value")
    parser.add_argument(
        "--ttl",
        type=int,
        default=None,
        help="TTL in seconds (default: each backend's own default)",
    )
    parser.add_argument("--host", default=settings.HOST, help="Line-protocol host")
    parser.add_argument("--port", type=int, default=settings.PORT, help="Line-protocol port")
    parser.add_argument("--http-url", default=settings.HTTP_URL, help="HTTP cache base URL")
    parser.add_argument("--redis-url", default=settings.REDIS_URL, help="Managed cache URL")
    parser.add_argument(
        "--pool-size",
        type=int,
        default=settings.POOL_SIZE,
        help="Connections held by the line-pool backend",
    )
    parser.add_argument(
        "--call-timeout",
        type=float,
        default=settings.CALL_TIMEOUT,
        help="Seconds allowed per call",
    )
    parser.add_argument(
        "--barrier-timeout",
        type=float,
        default=settings.BARRIER_TIMEOUT,
        help="Seconds allowed for a concurrent cell to finish",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file for JSON results",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    if args.iterations < 1:
        parser.error("--iterations must be at least 1")
    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be at least 1")
    if args.ttl is not None and args.ttl < 1:
        parser.error("--ttl must be at least 1")
    if not args.backend:
        args.backend = ["line", "http"]
    if any(kind.startswith("line") for kind in args.backend):
        # The line protocol cannot carry these; fail before any connection
        try:
            ProtocolParser().format_request(
                Command(type=CommandType.SETEX, key=args.key, value=args.value, ttl=args.ttl or 1)
            )
        except ValueError as e:
            parser.error(f"line backend cannot send this key/value: {e}")
    return args


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Overlay command line flags on the environment-derived settings."""
    return dataclasses.replace(
        settings,
        HOST=args.host,
        PORT=args.port,
        HTTP_URL=args.http_url,
        REDIS_URL=args.redis_url,
        POOL_SIZE=args.pool_size,
    )


def selected_operations(choice: str) -> List[Operation]:
    if choice == "both":
        return [Operation.SET, Operation.GET]
    return [Operation(choice)]


async def run_benchmark(args: argparse.Namespace) -> BenchmarkReport:
    """Build the requested backends, benchmark them and close them."""
    cfg = settings_from_args(args)

    async with AsyncExitStack() as stack:
        backends = []
        for kind in dict.fromkeys(args.backend):
            backends.append(await stack.enter_async_context(create_backend(kind, cfg)))

        harness = BenchmarkHarness(
            backends,
            iterations=args.iterations,
            mode=ExecutionMode(args.mode),
            concurrency=args.concurrency,
            call_timeout=args.call_timeout,
            barrier_timeout=args.barrier_timeout,
            failure_policy=FailurePolicy(args.failure_policy),
        )
        return await harness.run(
            operations=selected_operations(args.operation),
            key=args.key,
            value=args.value,
            ttl=args.ttl,
        )


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the cache-bench command."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        report = asyncio.run(run_benchmark(args))
    except KeyboardInterrupt:
        print("\nBenchmark interrupted.")
        return 1
    except BenchmarkError as e:
        logger.error(f"Benchmark failed: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid benchmark input: {e}")
        return 1

    reporter = ResultReporter()
    print(reporter.render(report))

    if args.output:
        with open(args.output, 'w') as f:
            f.write(reporter.to_json(report))
        print(f"Results saved to: {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
