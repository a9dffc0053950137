"""
Benchmark data model: samples, statistics and per-cell results.
"""

import statistics
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class Operation(Enum):
    """Cache operation being measured."""
    GET = "get"
    SET = "set"


class ExecutionMode(Enum):
    """How the N iterations of a cell are issued."""
    SEQUENTIAL = "sequential"
    CONCURRENT = "concurrent"


class FailurePolicy(Enum):
    """What a failed iteration does to its cell."""
    ABORT = "abort"            # Fail the whole benchmark invocation
    EXCLUDE = "exclude"        # Drop the sample, count the failure
    RETRY_ONCE = "retry-once"  # Retry once, then exclude and count


@dataclass(frozen=True)
class LatencySample:
    """One measured round-trip of a single cache call."""
    backend: str
    operation: Operation
    index: int
    duration_ms: float


@dataclass(frozen=True)
class LatencyStats:
    """Min/max/average over a complete set of sample durations."""
    min: float
    max: float
    average: float
    count: int

    @classmethod
    def from_durations(cls, durations: Iterable[float]) -> "LatencyStats":
        values = list(durations)
        if not values:
            raise ValueError("cannot compute latency stats from zero samples")
        return cls(
            min=min(values),
            max=max(values),
            average=statistics.mean(values),
            count=len(values),
        )

    @classmethod
    def from_samples(cls, samples: Iterable[LatencySample]) -> "LatencyStats":
        return cls.from_durations(s.duration_ms for s in samples)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min": self.min,
            "max": self.max,
            "average": self.average,
            "count": self.count,
        }


@dataclass(frozen=True)
class IterationFailure:
    """An iteration that produced no sample."""
    index: int
    error_type: str
    message: str


@dataclass
class CellResult:
    """
    Outcome of one (backend, operation, mode) benchmark cell.

    Attributes:
        samples: Successful round-trips, ordered by iteration index
        failures: Iterations that were excluded, ordered by index
        retries: Iterations that needed their one retry (retry-once policy)
        wall_time_ms: Elapsed time for the whole cell
        stats: None when every iteration failed
    """
    backend: str
    operation: Operation
    mode: ExecutionMode
    iterations: int
    samples: List[LatencySample] = field(default_factory=list)
    failures: List[IterationFailure] = field(default_factory=list)
    retries: int = 0
    wall_time_ms: float = 0.0
    stats: Optional[LatencyStats] = None

    @property
    def success_count(self) -> int:
        return len(self.samples)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary (raw samples excluded)."""
        return {
            "backend": self.backend,
            "operation": self.operation.value,
            "mode": self.mode.value,
            "iterations": self.iterations,
            "successful": self.success_count,
            "failed": self.failure_count,
            "retries": self.retries,
            "wall_time_ms": self.wall_time_ms,
            "stats": self.stats.to_dict() if self.stats else None,
        }


@dataclass
class BenchmarkReport:
    """All cells of one benchmark invocation."""
    mode: ExecutionMode
    iterations: int
    started_at: str
    finished_at: str = ""
    cells: List[CellResult] = field(default_factory=list)

    def cell(self, backend: str, operation: Operation) -> CellResult:
        for result in self.cells:
            if result.backend == backend and result.operation == operation:
                return result
        raise KeyError(f"no cell for {backend}/{operation.value}")

    @property
    def backends(self) -> List[str]:
        names: List[str] = []
        for result in self.cells:
            if result.backend not in names:
                names.append(result.backend)
        return names

    def to_dict(self) -> Dict[str, Any]:
        results: Dict[str, Dict[str, Any]] = {}
        for result in self.cells:
            results.setdefault(result.backend, {})[result.operation.value] = result.to_dict()
        return {
            "mode": self.mode.value,
            "iterations": self.iterations,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "results": results,
        }
