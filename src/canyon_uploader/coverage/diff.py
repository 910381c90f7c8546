"""Optional code-review diff attached to the map/init upload."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DIFF_FILENAME = "diff.json"


def load_diff(cwd: Path | None = None, *, filename: str = DEFAULT_DIFF_FILENAME) -> Any | None:
    """Load the diff artifact if one was produced earlier in the job.

    A missing file is not an error. An unreadable or malformed file is logged
    as a warning and treated as missing, so a bad diff never blocks the upload.

    Returns:
        The decoded JSON value, or None.
    """
    diff_path = (cwd or Path.cwd()) / filename
    if not diff_path.is_file():
        logger.debug("No diff file at %s", diff_path)
        return None

    try:
        diff = json.loads(diff_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable diff file %s: %s", diff_path, e)
        return None

    logger.info("Loaded diff from: %s", diff_path)
    return diff
