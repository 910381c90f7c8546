"""Aggregate Istanbul hit counters into a coverage summary.

Istanbul format:
{
  "/path/to/file.ts": {
    "path": "/path/to/file.ts",
    "statementMap": { "0": {...}, "1": {...} },
    "fnMap": { "0": {...}, "1": {...} },
    "branchMap": { "0": {...}, "1": {...} },
    "s": { "0": 1, "1": 0, ... },  // statement hit counts
    "f": { "0": 1, "1": 0, ... },  // function hit counts
    "b": { "0": [1, 0], ... }       // branch hit counts per location
  }
}

Only the hit counters are read, so summaries work equally on full entries and
on entries whose structural maps were stripped for upload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class CounterSummary:
    """Covered/total pair for one kind of counter."""

    covered: int = 0
    total: int = 0

    @property
    def percentage(self) -> float:
        """Return coverage as a percentage (0.0-100.0)."""
        if self.total == 0:
            return 100.0
        return (self.covered / self.total) * 100.0

    def add(self, covered: int, total: int) -> None:
        self.covered += covered
        self.total += total


@dataclass
class CoverageSummary:
    """Statement, function and branch totals across a coverage map."""

    files: int = 0
    statements: CounterSummary = field(default_factory=CounterSummary)
    functions: CounterSummary = field(default_factory=CounterSummary)
    branches: CounterSummary = field(default_factory=CounterSummary)


def _count_hits(counters: Any) -> tuple[int, int]:
    """Return (covered, total) for an ``s`` or ``f`` counter map."""
    if not isinstance(counters, dict):
        return 0, 0
    hits = [count for count in counters.values() if isinstance(count, int | float)]
    return sum(1 for count in hits if count > 0), len(hits)


def _count_branch_hits(counters: Any) -> tuple[int, int]:
    """Return (covered, total) for a ``b`` counter map of per-location lists."""
    if not isinstance(counters, dict):
        return 0, 0
    covered = 0
    total = 0
    for counts in counters.values():
        if isinstance(counts, list):
            covered += sum(1 for c in counts if isinstance(c, int | float) and c > 0)
            total += len(counts)
    return covered, total


def summarize_coverage(coverage: dict[str, Any]) -> CoverageSummary:
    """Summarize a merged coverage map. Non-object entries are ignored."""
    summary = CoverageSummary()
    for file_data in coverage.values():
        if not isinstance(file_data, dict):
            continue
        summary.files += 1
        summary.statements.add(*_count_hits(file_data.get("s")))
        summary.functions.add(*_count_hits(file_data.get("f")))
        summary.branches.add(*_count_branch_hits(file_data.get("b")))
    return summary


def summarize_files(coverage: dict[str, Any]) -> dict[str, CoverageSummary]:
    """Summarize each file of a coverage map separately."""
    return {
        path: summarize_coverage({path: file_data})
        for path, file_data in coverage.items()
        if isinstance(file_data, dict)
    }
