"""Coverage file loading, diff loading and Istanbul summaries."""

from __future__ import annotations

from canyon_uploader.coverage.diff import load_diff
from canyon_uploader.coverage.istanbul import (
    CounterSummary,
    CoverageSummary,
    summarize_coverage,
    summarize_files,
)
from canyon_uploader.coverage.loader import load_coverage_files, parse_coverage_paths

__all__ = [
    "CounterSummary",
    "CoverageSummary",
    "load_coverage_files",
    "load_diff",
    "parse_coverage_paths",
    "summarize_coverage",
    "summarize_files",
]
