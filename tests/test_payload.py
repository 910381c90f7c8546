"""Tests for map/init and client payload construction."""

from __future__ import annotations

import copy
import logging
from typing import Any

import pytest

from canyon_uploader.payload import (
    AUTOMATION_SCENE,
    BuildInfoShape,
    build_client_payload,
    build_event_metadata,
    build_map_init_payload,
    build_metadata,
    build_scene,
    build_workflow_metadata,
    first_entry_defaults,
    parse_scene,
    strip_coverage_entry,
)
from canyon_uploader.utils.ci_context import ProvenanceInfo

_PROVENANCE = ProvenanceInfo(
    provider="github",
    repo_id="canyon-project/canyon",
    sha="envsha",
    ref="refs/heads/main",
    workflow="CI",
    run_id="987",
    run_attempt="1",
    owner="canyon-project",
    repo="canyon",
)


def _full_entry(**extra: Any) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "path": "/src/a.ts",
        "statementMap": {"0": {"start": {"line": 1, "column": 0}}},
        "fnMap": {"0": {"name": "a"}},
        "branchMap": {},
        "inputSourceMap": {"version": 3},
        "s": {"0": 1},
        "f": {"0": 1},
        "b": {},
    }
    entry.update(extra)
    return entry


# ── first_entry_defaults ─────────────────────────────────────────


def test_first_entry_defaults_whitelist() -> None:
    coverage = {
        "/src/a.ts": _full_entry(sha="entrysha", buildTarget="", other="x", provider=7),
        "/src/b.ts": _full_entry(sha="second"),
    }

    assert first_entry_defaults(coverage) == {"sha": "entrysha"}


def test_first_entry_defaults_non_object_first_entry() -> None:
    assert first_entry_defaults({"/src/a.ts": "junk", "/src/b.ts": _full_entry(sha="x")}) == {}
    assert first_entry_defaults({}) == {}


# ── map/init payload ─────────────────────────────────────────────


def test_map_init_payload_keys_and_env_fallback() -> None:
    coverage = {"/src/a.ts": _full_entry()}

    payload = build_map_init_payload(coverage, _PROVENANCE, "/home/runner/work/app", "")

    assert list(payload) == [
        "sha",
        "provider",
        "repoID",
        "instrumentCwd",
        "buildTarget",
        "build",
        "coverage",
    ]
    assert payload["sha"] == "envsha"
    assert payload["provider"] == "github"
    assert payload["repoID"] == "canyon-project/canyon"
    assert payload["instrumentCwd"] == "/home/runner/work/app"
    assert payload["buildTarget"] == ""
    assert payload["coverage"] is coverage


def test_map_init_payload_prefers_first_entry_over_env() -> None:
    coverage = {
        "/src/a.ts": _full_entry(
            sha="entrysha",
            provider="gitlab",
            repoID="42",
            instrumentCwd="/entry/cwd",
            buildTarget="web",
        )
    }

    payload = build_map_init_payload(coverage, _PROVENANCE, "", "")

    assert payload["sha"] == "entrysha"
    assert payload["provider"] == "gitlab"
    assert payload["repoID"] == "42"
    assert payload["instrumentCwd"] == "/entry/cwd"
    assert payload["buildTarget"] == "web"


def test_map_init_payload_explicit_values_win() -> None:
    coverage = {"/src/a.ts": _full_entry(sha="entrysha", instrumentCwd="/entry/cwd")}

    payload = build_map_init_payload(
        coverage,
        _PROVENANCE,
        "/explicit/cwd",
        "mobile",
        sha="explicitsha",
        provider="gitea",
        repo_id="owner/other",
    )

    assert payload["sha"] == "explicitsha"
    assert payload["provider"] == "gitea"
    assert payload["repoID"] == "owner/other"
    assert payload["instrumentCwd"] == "/explicit/cwd"
    assert payload["buildTarget"] == "mobile"


def test_map_init_payload_keeps_structural_maps() -> None:
    coverage = {"/src/a.ts": _full_entry()}

    payload = build_map_init_payload(coverage, _PROVENANCE, "/cwd", "")

    assert "statementMap" in payload["coverage"]["/src/a.ts"]
    assert "inputSourceMap" in payload["coverage"]["/src/a.ts"]


def test_map_init_payload_diff_present_or_omitted() -> None:
    coverage = {"/src/a.ts": _full_entry()}

    assert "diff" not in build_map_init_payload(coverage, _PROVENANCE, "/cwd", "")

    diff = {"files": ["src/a.ts"]}
    payload = build_map_init_payload(coverage, _PROVENANCE, "/cwd", "", diff)
    assert payload["diff"] == diff
    assert list(payload)[-1] == "diff"


def test_map_init_payload_defaults_to_workflow_build() -> None:
    payload = build_map_init_payload({"/src/a.ts": _full_entry()}, _PROVENANCE, "/cwd", "")

    assert payload["build"] == {
        "workflow": "CI",
        "runId": "987",
        "runAttempt": "1",
        "ref": "refs/heads/main",
    }


def test_map_init_payload_uses_given_build() -> None:
    build = {"provider": "github", "buildID": "987"}

    payload = build_map_init_payload(
        {"/src/a.ts": _full_entry()}, _PROVENANCE, "/cwd", "", build=build
    )

    assert payload["build"] == build


# ── build metadata ───────────────────────────────────────────────


def test_workflow_metadata() -> None:
    assert build_workflow_metadata(_PROVENANCE) == {
        "workflow": "CI",
        "runId": "987",
        "runAttempt": "1",
        "ref": "refs/heads/main",
    }


def test_event_metadata_with_event_and_branch() -> None:
    metadata = build_event_metadata(_PROVENANCE, '{"action": "opened"}')

    assert metadata == {
        "provider": "github",
        "buildID": "987",
        "event": '{"action": "opened"}',
        "branch": "main",
    }


def test_event_metadata_omits_missing_fields() -> None:
    tag_build = ProvenanceInfo(
        provider="github",
        repo_id="",
        sha="",
        ref="refs/tags/v1.2.0",
        workflow="",
        run_id="55",
        run_attempt="",
    )

    assert build_event_metadata(tag_build) == {"provider": "github", "buildID": "55"}


def test_build_metadata_dispatches_on_shape() -> None:
    assert build_metadata(_PROVENANCE, BuildInfoShape.WORKFLOW) == build_workflow_metadata(
        _PROVENANCE
    )
    assert build_metadata(_PROVENANCE, BuildInfoShape.EVENT, "{}")["event"] == "{}"


# ── client payload ───────────────────────────────────────────────


def test_strip_coverage_entry_removes_structural_maps() -> None:
    stripped = strip_coverage_entry(_full_entry(sha="x"))

    assert set(stripped) == {"path", "s", "f", "b", "sha"}


def test_strip_coverage_entry_passes_non_objects_through() -> None:
    assert strip_coverage_entry("raw") == "raw"
    assert strip_coverage_entry(None) is None


def test_client_payload_does_not_mutate_input() -> None:
    coverage = {"/src/a.ts": _full_entry(), "/src/b.ts": _full_entry(path="/src/b.ts")}
    before = copy.deepcopy(coverage)

    payload = build_client_payload(coverage, {"team": "web"})

    assert coverage == before
    assert set(payload) == {"coverage", "scene"}
    assert set(payload["coverage"]) == {"/src/a.ts", "/src/b.ts"}
    for entry in payload["coverage"].values():
        assert "statementMap" not in entry
        assert "fnMap" not in entry
        assert "branchMap" not in entry
        assert "inputSourceMap" not in entry
        assert entry["s"] == {"0": 1}
    assert payload["scene"] == {"team": "web"}


# ── scene ────────────────────────────────────────────────────────


def test_parse_scene_valid() -> None:
    assert parse_scene('{"team": "web", "nightly": true}') == {"team": "web", "nightly": True}


@pytest.mark.parametrize("raw", ["", "   "])
def test_parse_scene_empty(raw: str) -> None:
    assert parse_scene(raw) == {}


def test_parse_scene_malformed_warns(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="canyon_uploader"):
        assert parse_scene("{team: web") == {}

    assert "Failed to parse scene JSON" in caplog.text


def test_parse_scene_non_object_warns(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="canyon_uploader"):
        assert parse_scene('["a", "b"]') == {}

    assert "not an object" in caplog.text


def test_build_scene_merge_order() -> None:
    user = {"team": "web", "source": "manual", "sha": "user-sha"}

    scene = build_scene(user, _PROVENANCE)

    assert scene["team"] == "web"
    assert scene["source"] == AUTOMATION_SCENE["source"]
    assert scene["type"] == "ci"
    assert scene["env"] == "test"
    assert scene["trigger"] == "pipeline"
    assert scene["sha"] == "envsha"
    assert scene["repoID"] == "canyon-project/canyon"
    assert scene["runId"] == "987"
    assert scene["owner"] == "canyon-project"
