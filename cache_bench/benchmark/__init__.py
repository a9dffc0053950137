"""Latency benchmark harness for cache backends."""

from .harness import BenchmarkHarness
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
from .report import ResultReporter

__all__ = [
    "BenchmarkHarness",
    "BenchmarkReport",
    "CellResult",
    "ExecutionMode",
    "FailurePolicy",
    "IterationFailure",
    "LatencySample",
    "LatencyStats",
    "Operation",
    "ResultReporter",
]
