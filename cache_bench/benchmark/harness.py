"""
Latency benchmark harness.

Drives N get or set calls against each CacheBackend, sequentially or as a
fan-out of asyncio tasks, records the duration of every round-trip and
reduces them to min/max/average per (backend, operation).

Usage:
    harness = BenchmarkHarness([line_client, http_client], iterations=1000,
                               mode=ExecutionMode.CONCURRENT)
    report = await harness.run(key="weathers", value=payload)
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from .models import (
    BenchmarkReport,
    CellResult,
    ExecutionMode,
    FailurePolicy,
    IterationFailure,
    LatencySample,
    LatencyStats,
    Operation,
)
from ..backends.base import CacheBackend
from ..config.settings import settings
from ..errors import BenchmarkAborted, CacheBackendError, CallTimeout

logger = logging.getLogger(__name__)


@dataclass
class _Outcome:
    """Result of one iteration: exactly one of sample/failure is set."""
    sample: Optional[LatencySample] = None
    failure: Optional[IterationFailure] = None
    retried: bool = False


class BenchmarkHarness:
    """
    Latency benchmark over one or more cache backends.

    Sequential mode awaits each call before issuing the next. Concurrent
    mode launches all N calls as tasks at once (unbounded fan-out) or,
    when ``concurrency`` is set, keeps at most that many in flight; the
    cell then waits for all of them, at most ``barrier_timeout`` seconds.

    Attributes:
        backends: Backends under test, benchmarked one after another
        iterations: Calls per cell (N)
        mode: ExecutionMode for every cell
        concurrency: In-flight cap for concurrent mode (None = unbounded)
        call_timeout: Deadline for a single call (None = no deadline)
        barrier_timeout: Deadline for a concurrent cell's fan-in
        failure_policy: What a failed iteration does to its cell
    """

    def __init__(
            self,
            backends: Sequence[CacheBackend],
            iterations: int = None,
            mode: ExecutionMode = ExecutionMode.SEQUENTIAL,
            *,
            concurrency: Optional[int] = None,
            call_timeout: Optional[float] = None,
            barrier_timeout: Optional[float] = None,
            failure_policy: FailurePolicy = FailurePolicy.EXCLUDE,
    ):
        self.backends = list(backends)
        self.iterations = iterations if iterations is not None else settings.ITERATIONS
        self.mode = mode
        self.concurrency = concurrency
        self.call_timeout = call_timeout
        self.barrier_timeout = barrier_timeout
        self.failure_policy = failure_policy

        if not self.backends:
            raise ValueError("at least one backend is required")
        if self.iterations < 1:
            raise ValueError(f"iterations must be at least 1, got {self.iterations}")
        if self.concurrency is not None and self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        names = [backend.name for backend in self.backends]
        if len(set(names)) != len(names):
            raise ValueError(f"backend names must be unique, got {names}")

    async def run(
            self,
            operations: Sequence[Operation] = (Operation.SET, Operation.GET),
            key: str = None,
            value: str = "",
            ttl: Optional[int] = None,
    ) -> BenchmarkReport:
        """
        Benchmark every backend for every requested operation.

        Set cells run before get cells for the same backend so reads hit.

        Raises:
            BenchmarkAborted: under FailurePolicy.ABORT when any call fails.
        """
        key = key if key is not None else settings.BENCHMARK_KEY
        ordered = [op for op in (Operation.SET, Operation.GET) if op in operations]
        report = BenchmarkReport(
            mode=self.mode,
            iterations=self.iterations,
            started_at=datetime.now().isoformat(),
        )

        logger.info(
            f"Benchmarking {', '.join(b.name for b in self.backends)}: "
            f"{'/'.join(op.value for op in ordered)} x{self.iterations} ({self.mode.value})"
        )

        for backend in self.backends:
            for operation in ordered:
                cell = await self.run_cell(backend, operation, key, value, ttl)
                report.cells.append(cell)

        report.finished_at = datetime.now().isoformat()
        return report

    async def run_cell(
            self,
            backend: CacheBackend,
            operation: Operation,
            key: str,
            value: str = "",
            ttl: Optional[int] = None,
    ) -> CellResult:
        """Run the N iterations of one (backend, operation) cell."""
        start = time.perf_counter()

        if self.mode == ExecutionMode.SEQUENTIAL:
            outcomes = []
            for index in range(self.iterations):
                outcomes.append(
                    await self._iteration(backend, operation, index, key, value, ttl)
                )
        else:
            outcomes = await self._fan_out(backend, operation, key, value, ttl)

        cell = CellResult(
            backend=backend.name,
            operation=operation,
            mode=self.mode,
            iterations=self.iterations,
            wall_time_ms=(time.perf_counter() - start) * 1000,
        )
        for outcome in outcomes:
            if outcome.sample is not None:
                cell.samples.append(outcome.sample)
            else:
                cell.failures.append(outcome.failure)
            if outcome.retried:
                cell.retries += 1

        if cell.samples:
            cell.stats = LatencyStats.from_samples(cell.samples)
            logger.info(
                f"{backend.name} {operation.value}: min={cell.stats.min:.3f}ms "
                f"max={cell.stats.max:.3f}ms avg={cell.stats.average:.3f}ms "
                f"({cell.failure_count} failed)"
            )
        else:
            logger.warning(f"{backend.name} {operation.value}: all {self.iterations} calls failed")
        return cell

    async def _fan_out(
            self,
            backend: CacheBackend,
            operation: Operation,
            key: str,
            value: str,
            ttl: Optional[int],
    ) -> List[_Outcome]:
        """Launch all iterations as tasks and wait for every one of them."""
        semaphore = asyncio.Semaphore(self.concurrency) if self.concurrency else None

        async def unit(index: int) -> _Outcome:
            if semaphore is None:
                return await self._iteration(backend, operation, index, key, value, ttl)
            async with semaphore:
                return await self._iteration(backend, operation, index, key, value, ttl)

        tasks = [asyncio.create_task(unit(index)) for index in range(self.iterations)]
        try:
            done, pending = await asyncio.wait(
                tasks,
                timeout=self.barrier_timeout,
                return_when=asyncio.FIRST_EXCEPTION,
            )
        finally:
            # Also reached when the caller itself is cancelled
            stragglers = [task for task in tasks if not task.done()]
            for task in stragglers:
                task.cancel()
            if stragglers:
                await asyncio.gather(*stragglers, return_exceptions=True)

        for task in tasks:
            if task in done and task.exception() is not None:
                raise task.exception()

        outcomes = []
        for index, task in enumerate(tasks):
            if task in pending:
                timeout = CallTimeout(
                    f"not finished within the {self.barrier_timeout}s barrier deadline",
                    backend=backend.name,
                )
                if self.failure_policy == FailurePolicy.ABORT:
                    raise BenchmarkAborted(backend.name, operation.value, index, timeout)
                outcomes.append(_Outcome(failure=self._failure(index, timeout)))
            else:
                outcomes.append(task.result())
        return outcomes

    async def _iteration(
            self,
            backend: CacheBackend,
            operation: Operation,
            index: int,
            key: str,
            value: str,
            ttl: Optional[int],
    ) -> _Outcome:
        """Run one iteration, applying the failure policy."""
        attempts = 2 if self.failure_policy == FailurePolicy.RETRY_ONCE else 1
        error: Optional[CacheBackendError] = None

        for attempt in range(attempts):
            try:
                duration = await self._timed_call(backend, operation, key, value, ttl)
            except CacheBackendError as exc:
                error = exc
                logger.debug(f"{backend.name} {operation.value} #{index} failed: {exc}")
                if self.failure_policy == FailurePolicy.ABORT:
                    raise BenchmarkAborted(backend.name, operation.value, index, exc) from exc
                continue

            sample = LatencySample(
                backend=backend.name,
                operation=operation,
                index=index,
                duration_ms=duration,
            )
            return _Outcome(sample=sample, retried=attempt > 0)

        return _Outcome(failure=self._failure(index, error), retried=attempts > 1)

    async def _timed_call(
            self,
            backend: CacheBackend,
            operation: Operation,
            key: str,
            value: str,
            ttl: Optional[int],
    ) -> float:
        """Time exactly one backend call; returns milliseconds."""
        if operation == Operation.GET:
            call = backend.get(key)
        else:
            call = backend.set(key, value, ttl)

        start = time.perf_counter()
        if self.call_timeout is None:
            await call
        else:
            try:
                await asyncio.wait_for(call, timeout=self.call_timeout)
            except asyncio.TimeoutError as exc:
                raise CallTimeout(
                    f"{operation.value} exceeded {self.call_timeout}s", backend=backend.name
                ) from exc
        return max(0.0, (time.perf_counter() - start) * 1000)

    @staticmethod
    def _failure(index: int, error: CacheBackendError) -> IterationFailure:
        return IterationFailure(
            index=index,
            error_type=type(error).__name__,
            message=str(error),
        )
