"""
Result formatting for benchmark reports.
"""

import json
from typing import Any, Dict

from .models import BenchmarkReport, CellResult


class ResultReporter:
    """Renders a BenchmarkReport as a text table or JSON."""

    WIDTH = 78

    def render(self, report: BenchmarkReport) -> str:
        """Return the report as a fixed-width table."""
        lines = [
            "=" * self.WIDTH,
            f"{'CACHE LATENCY BENCHMARK':^{self.WIDTH}}",
            "=" * self.WIDTH,
            f"Mode: {report.mode.value}    Iterations per cell: {report.iterations:,}",
            "-" * self.WIDTH,
            f"{'Backend':<14} {'Op':<5} {'Min (ms)':>11} {'Max (ms)':>11} "
            f"{'Avg (ms)':>11} {'OK':>9} {'Failed':>9}",
            "-" * self.WIDTH,
        ]
        for cell in report.cells:
            lines.append(self._row(cell))
        lines.append("=" * self.WIDTH)

        failed = [cell for cell in report.cells if cell.failures]
        if failed:
            lines.append("")
            lines.append("Failures:")
            for cell in failed:
                first = cell.failures[0]
                lines.append(
                    f"  {cell.backend} {cell.operation.value}: {cell.failure_count:,} "
                    f"(first: {first.error_type}: {first.message})"
                )
        return "\n".join(lines)

    def _row(self, cell: CellResult) -> str:
        if cell.stats is None:
            figures = f"{'n/a':>11} {'n/a':>11} {'n/a':>11}"
        else:
            figures = (
                f"{cell.stats.min:>11.3f} {cell.stats.max:>11.3f} "
                f"{cell.stats.average:>11.3f}"
            )
        return (
            f"{cell.backend:<14} {cell.operation.value:<5} {figures} "
            f"{cell.success_count:>9,} {cell.failure_count:>9,}"
        )

    def to_dict(self, report: BenchmarkReport) -> Dict[str, Any]:
        return report.to_dict()

    def to_json(self, report: BenchmarkReport) -> str:
        return json.dumps(self.to_dict(report), indent=2)
