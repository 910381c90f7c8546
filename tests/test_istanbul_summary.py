"""Tests for Istanbul counter summaries (coverage/istanbul.py)."""

from __future__ import annotations

import pytest

from canyon_uploader.coverage import (
    CounterSummary,
    CoverageSummary,
    summarize_coverage,
    summarize_files,
)
from canyon_uploader.payload import build_client_payload

# ── Sample Istanbul coverage JSON ────────────────────────────────

_SAMPLE_ISTANBUL_COVERAGE = {
    "/project/src/math.ts": {
        "path": "/project/src/math.ts",
        "statementMap": {
            "0": {"start": {"line": 1, "column": 0}, "end": {"line": 1, "column": 20}},
            "1": {"start": {"line": 2, "column": 0}, "end": {"line": 2, "column": 15}},
            "2": {"start": {"line": 5, "column": 0}, "end": {"line": 5, "column": 25}},
            "3": {"start": {"line": 6, "column": 0}, "end": {"line": 6, "column": 15}},
        },
        "fnMap": {
            "0": {
                "name": "add",
                "loc": {"start": {"line": 1, "column": 0}, "end": {"line": 3, "column": 1}},
            },
            "1": {
                "name": "multiply",
                "loc": {"start": {"line": 5, "column": 0}, "end": {"line": 7, "column": 1}},
            },
        },
        "branchMap": {
            "0": {
                "loc": {"start": {"line": 2, "column": 2}, "end": {"line": 2, "column": 20}},
                "type": "if",
                "locations": [
                    {"start": {"line": 2, "column": 2}, "end": {"line": 2, "column": 10}},
                    {"start": {"line": 2, "column": 12}, "end": {"line": 2, "column": 20}},
                ],
            },
        },
        "s": {"0": 10, "1": 8, "2": 5, "3": 0},
        "f": {"0": 10, "1": 0},
        "b": {"0": [8, 2]},
    },
    "/project/src/utils.ts": {
        "path": "/project/src/utils.ts",
        "statementMap": {
            "0": {"start": {"line": 1, "column": 0}, "end": {"line": 1, "column": 30}},
            "1": {"start": {"line": 2, "column": 0}, "end": {"line": 2, "column": 20}},
        },
        "fnMap": {
            "0": {
                "name": "identity",
                "loc": {"start": {"line": 1, "column": 0}, "end": {"line": 3, "column": 1}},
            },
        },
        "branchMap": {},
        "s": {"0": 0, "1": 0},
        "f": {"0": 0},
        "b": {},
    },
}


def test_counter_summary_percentage() -> None:
    assert CounterSummary(covered=3, total=4).percentage == pytest.approx(75.0)
    assert CounterSummary().percentage == 100.0


def test_summarize_coverage_totals() -> None:
    summary = summarize_coverage(_SAMPLE_ISTANBUL_COVERAGE)

    assert summary.files == 2
    assert (summary.statements.covered, summary.statements.total) == (3, 6)
    assert (summary.functions.covered, summary.functions.total) == (1, 3)
    assert (summary.branches.covered, summary.branches.total) == (2, 2)
    assert summary.statements.percentage == pytest.approx(50.0)


def test_summarize_empty_map() -> None:
    summary = summarize_coverage({})

    assert summary == CoverageSummary()
    assert summary.statements.percentage == 100.0


def test_summarize_ignores_non_object_entries() -> None:
    summary = summarize_coverage({"/a.ts": "not-an-entry", "/b.ts": {"s": {"0": 1}}})

    assert summary.files == 1
    assert summary.statements.total == 1


def test_summarize_tolerates_malformed_counters() -> None:
    summary = summarize_coverage({"/a.ts": {"s": ["bad"], "f": {"0": "x"}, "b": {"0": 3}}})

    assert summary.files == 1
    assert summary.statements.total == 0
    assert summary.functions.total == 0
    assert summary.branches.total == 0


def test_summary_unchanged_after_stripping_structural_maps() -> None:
    stripped = build_client_payload(_SAMPLE_ISTANBUL_COVERAGE, {})["coverage"]

    assert summarize_coverage(stripped) == summarize_coverage(_SAMPLE_ISTANBUL_COVERAGE)


def test_summarize_files() -> None:
    per_file = summarize_files(_SAMPLE_ISTANBUL_COVERAGE)

    assert set(per_file) == set(_SAMPLE_ISTANBUL_COVERAGE)
    assert per_file["/project/src/utils.ts"].statements.covered == 0
    assert per_file["/project/src/math.ts"].functions.covered == 1
