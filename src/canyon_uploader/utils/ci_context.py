"""CI provenance detection utilities."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

# Expected number of parts when splitting "owner/repo"
_OWNER_REPO_PARTS = 2

_BRANCH_REF_PREFIX = "refs/heads/"

GITHUB_PROVIDER = "github"


class RepoIdScheme(Enum):
    """Which environment value identifies the repository on the Canyon side."""

    REPOSITORY = "repository"
    """Composite ``owner/repo`` from ``GITHUB_REPOSITORY``."""

    REPOSITORY_ID = "repository-id"
    """Numeric id from ``GITHUB_REPOSITORY_ID``."""


@dataclass(frozen=True)
class ProvenanceInfo:
    """Snapshot of the commit and workflow run that produced the coverage."""

    provider: str
    """VCS provider name (always ``github`` for Actions runs)."""

    repo_id: str
    """Repository identifier, shaped by the active :class:`RepoIdScheme`."""

    sha: str
    """Commit SHA under test."""

    ref: str
    """Full git ref (e.g. ``refs/heads/main``)."""

    workflow: str
    """Workflow name."""

    run_id: str
    """Workflow run id."""

    run_attempt: str
    """Workflow run attempt number."""

    owner: str | None = None
    """Repository owner (org or user)."""

    repo: str | None = None
    """Repository name."""

    @property
    def branch(self) -> str | None:
        """Branch name when the ref points at a branch."""
        return branch_from_ref(self.ref)

    def as_dict(self) -> dict[str, str]:
        """Serialize with the field names the Canyon API expects."""
        data = {
            "provider": self.provider,
            "repoID": self.repo_id,
            "sha": self.sha,
            "ref": self.ref,
            "workflow": self.workflow,
            "runId": self.run_id,
            "runAttempt": self.run_attempt,
        }
        if self.owner is not None:
            data["owner"] = self.owner
        if self.repo is not None:
            data["repo"] = self.repo
        return data


ProvenanceProvider = Callable[[], ProvenanceInfo]


def branch_from_ref(ref: str) -> str | None:
    """Return ``<name>`` for ``refs/heads/<name>``, otherwise None."""
    if ref.startswith(_BRANCH_REF_PREFIX) and len(ref) > len(_BRANCH_REF_PREFIX):
        return ref[len(_BRANCH_REF_PREFIX) :]
    return None


def is_github_actions(env: Mapping[str, str] | None = None) -> bool:
    """Return True when running inside a GitHub Actions job."""
    environ = os.environ if env is None else env
    return environ.get("GITHUB_ACTIONS", "") == "true"


def read_provenance(
    env: Mapping[str, str] | None = None,
    *,
    scheme: RepoIdScheme = RepoIdScheme.REPOSITORY,
) -> ProvenanceInfo:
    """Read repository and run provenance from GitHub Actions variables.

    Absent variables map to empty strings so the result is always complete.

    Args:
        env: Environment mapping. Defaults to ``os.environ``.
        scheme: Which variable supplies ``repo_id``.

    Returns:
        ProvenanceInfo for the current run.
    """
    environ = os.environ if env is None else env

    repository = environ.get("GITHUB_REPOSITORY", "")
    repo_parts = repository.split("/") if repository else []
    owner = repo_parts[0] if len(repo_parts) == _OWNER_REPO_PARTS else None
    repo = repo_parts[1] if len(repo_parts) == _OWNER_REPO_PARTS else None

    if scheme is RepoIdScheme.REPOSITORY_ID:
        repo_id = environ.get("GITHUB_REPOSITORY_ID", "")
    else:
        repo_id = repository

    return ProvenanceInfo(
        provider=GITHUB_PROVIDER,
        repo_id=repo_id,
        sha=environ.get("GITHUB_SHA", ""),
        ref=environ.get("GITHUB_REF", ""),
        workflow=environ.get("GITHUB_WORKFLOW", ""),
        run_id=environ.get("GITHUB_RUN_ID", ""),
        run_attempt=environ.get("GITHUB_RUN_ATTEMPT", ""),
        owner=owner,
        repo=repo,
    )


def read_event_payload(env: Mapping[str, str] | None = None) -> str | None:
    """Return the raw text of the webhook event that triggered the run.

    Returns:
        File contents of ``GITHUB_EVENT_PATH``, or None when unset or unreadable.
    """
    environ = os.environ if env is None else env
    event_path = environ.get("GITHUB_EVENT_PATH", "").strip()
    if not event_path:
        return None
    try:
        return Path(event_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read CI event payload %s: %s", event_path, e)
        return None
