"""Request bodies for the Canyon map/init and client upload endpoints."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from canyon_uploader.utils.ci_context import ProvenanceInfo

logger = logging.getLogger(__name__)

# Large static structures the server already knows from map/init
STRIPPED_FIELDS = ("statementMap", "fnMap", "branchMap", "inputSourceMap")

# Fields of the first coverage entry that may stand in for missing inputs
FALLBACK_FIELDS = ("sha", "provider", "repoID", "instrumentCwd", "buildTarget")

AUTOMATION_SCENE: dict[str, str] = {
    "source": "automation",
    "type": "ci",
    "env": "test",
    "trigger": "pipeline",
}


class BuildInfoShape(Enum):
    """Shape of the ``build`` object sent with map/init."""

    WORKFLOW = "workflow"
    """``{workflow, runId, runAttempt, ref}``."""

    EVENT = "event"
    """``{provider, buildID, event?, branch?}`` carrying the raw CI event."""


def first_entry_defaults(coverage: Mapping[str, Any]) -> dict[str, str]:
    """Return the whitelisted, non-empty string fields of the first entry."""
    first = next(iter(coverage.values()), None)
    if not isinstance(first, dict):
        return {}
    return {
        name: first[name]
        for name in FALLBACK_FIELDS
        if isinstance(first.get(name), str) and first[name]
    }


def build_workflow_metadata(provenance: ProvenanceInfo) -> dict[str, str]:
    return {
        "workflow": provenance.workflow,
        "runId": provenance.run_id,
        "runAttempt": provenance.run_attempt,
        "ref": provenance.ref,
    }


def build_event_metadata(provenance: ProvenanceInfo, event: str | None = None) -> dict[str, str]:
    metadata = {
        "provider": provenance.provider,
        "buildID": provenance.run_id,
    }
    if event is not None:
        metadata["event"] = event
    branch = provenance.branch
    if branch is not None:
        metadata["branch"] = branch
    return metadata


def build_metadata(
    provenance: ProvenanceInfo,
    shape: BuildInfoShape,
    event: str | None = None,
) -> dict[str, str]:
    """Build the ``build`` object in the requested shape."""
    if shape is BuildInfoShape.EVENT:
        return build_event_metadata(provenance, event)
    return build_workflow_metadata(provenance)


def build_map_init_payload(
    coverage: dict[str, Any],
    provenance: ProvenanceInfo,
    instrument_cwd: str,
    build_target: str,
    diff: Any | None = None,
    *,
    build: dict[str, str] | None = None,
    sha: str = "",
    provider: str = "",
    repo_id: str = "",
) -> dict[str, Any]:
    """Build the map/init body that registers the full coverage snapshot.

    ``sha``, ``provider`` and ``repoID`` resolve explicit argument, then the
    first coverage entry, then *provenance*. ``instrumentCwd`` and
    ``buildTarget`` resolve explicit argument, then the first coverage entry.

    Args:
        coverage: Merged coverage map (sent unmodified).
        provenance: Environment-derived provenance.
        instrument_cwd: Working directory the code was instrumented in.
        build_target: Free-form build target label.
        diff: Optional diff data; the ``diff`` key is omitted when None.
        build: Prebuilt ``build`` object. Defaults to the workflow shape.
        sha: Explicit commit SHA override.
        provider: Explicit provider override.
        repo_id: Explicit repository id override.

    Returns:
        JSON-serializable request body.
    """
    defaults = first_entry_defaults(coverage)

    payload: dict[str, Any] = {
        "sha": sha or defaults.get("sha") or provenance.sha,
        "provider": provider or defaults.get("provider") or provenance.provider,
        "repoID": repo_id or defaults.get("repoID") or provenance.repo_id,
        "instrumentCwd": instrument_cwd or defaults.get("instrumentCwd", ""),
        "buildTarget": build_target or defaults.get("buildTarget", ""),
        "build": build if build is not None else build_workflow_metadata(provenance),
        "coverage": coverage,
    }
    if diff is not None:
        payload["diff"] = diff
    return payload


def strip_coverage_entry(entry: Any) -> Any:
    """Return a shallow copy of *entry* without the structural maps."""
    if not isinstance(entry, dict):
        return entry
    return {key: value for key, value in entry.items() if key not in STRIPPED_FIELDS}


def build_client_payload(coverage: Mapping[str, Any], scene: dict[str, Any]) -> dict[str, Any]:
    """Build the lighter client upload body. *coverage* is left untouched."""
    return {
        "coverage": {path: strip_coverage_entry(entry) for path, entry in coverage.items()},
        "scene": scene,
    }


def parse_scene(raw: str) -> dict[str, Any]:
    """Decode the ``scene`` input; malformed values degrade to an empty scene."""
    if not raw.strip():
        return {}
    try:
        scene = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse scene JSON: %s. Using empty object.", e)
        return {}
    if not isinstance(scene, dict):
        logger.warning("Scene JSON is not an object. Using empty object.")
        return {}
    return scene


def build_scene(scene: Mapping[str, Any], provenance: ProvenanceInfo) -> dict[str, Any]:
    """Merge caller scene, the automation tags and provenance (later wins)."""
    return {**scene, **AUTOMATION_SCENE, **provenance.as_dict()}
