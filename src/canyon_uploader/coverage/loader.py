"""Load and merge Istanbul ``coverage-final.json`` files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from canyon_uploader.errors import CoverageParseError, InputError

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

_PATH_SEPARATOR = ","


def parse_coverage_paths(raw: str) -> list[str]:
    """Split a comma-separated ``coverage-file`` value into paths.

    Raises:
        InputError: If no non-empty path remains after trimming.
    """
    paths = [part.strip() for part in raw.split(_PATH_SEPARATOR)]
    paths = [path for path in paths if path]
    if not paths:
        raise InputError("No coverage files specified")
    return paths


def _read_coverage_file(full_path: Path) -> dict[str, Any]:
    try:
        data = json.loads(full_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error("Failed to parse coverage file %s: %s", full_path, e)
        raise CoverageParseError(str(full_path), str(e)) from e

    if not isinstance(data, dict):
        logger.error("Coverage file %s does not contain a JSON object", full_path)
        raise CoverageParseError(
            str(full_path), f"expected a JSON object, got {type(data).__name__}"
        )
    return data


def load_coverage_files(paths: Iterable[str], *, cwd: Path | None = None) -> dict[str, Any]:
    """Read each coverage file and merge them into one coverage map.

    Paths are resolved against *cwd* (the process working directory by
    default). Paths that do not exist are skipped with a warning; when two
    files describe the same source path, the later file wins.

    Args:
        paths: Coverage file paths, in merge order.
        cwd: Directory relative paths are resolved against.

    Returns:
        Merged mapping of source file path to Istanbul file coverage.

    Raises:
        CoverageParseError: If an existing path cannot be read or is not a
            valid JSON object.
    """
    base = cwd or Path.cwd()
    merged: dict[str, Any] = {}

    for raw_path in paths:
        full_path = (base / raw_path.strip()).resolve()
        if not full_path.exists():
            logger.warning("Coverage file not found: %s", full_path)
            continue

        coverage = _read_coverage_file(full_path)
        merged.update(coverage)
        logger.info("Loaded coverage from: %s", full_path)

    return merged
