"""Upload configuration from CLI options, action inputs and ``.canyon.yml``."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import yaml

from canyon_uploader.coverage.diff import DEFAULT_DIFF_FILENAME
from canyon_uploader.coverage.loader import parse_coverage_paths
from canyon_uploader.errors import InputError
from canyon_uploader.payload import BuildInfoShape, parse_scene
from canyon_uploader.utils.actions import get_input, parse_boolean
from canyon_uploader.utils.ci_context import RepoIdScheme

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

DEFAULT_CONFIG_FILENAME = ".canyon.yml"

INPUT_NAMES = (
    "coverage-file",
    "canyon-url",
    "canyon-token",
    "instrument-cwd",
    "build-target",
    "scene",
    "fail-on-error",
    "pipeline-mode",
    "build-info",
    "repo-id-source",
    "sha",
    "provider",
    "repo-id",
    "diff-file",
    "timeout",
)

_E = TypeVar("_E", bound=Enum)

_REQUIRED_INPUTS = ("coverage-file", "canyon-url", "instrument-cwd")
_URL_SCHEMES = ("http://", "https://")


class PipelineMode(Enum):
    """Which Canyon endpoints an upload calls."""

    SINGLE_PHASE = "single"
    """map/init only."""

    TWO_PHASE = "two-phase"
    """map/init followed by the client upload."""


def _resolve_env_vars(value: str, env: Mapping[str, str]) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = env.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _stringify(value: Any, env: Mapping[str, str]) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    # A list of scalars is the YAML spelling of a comma-separated input
    if isinstance(value, list) and not any(isinstance(item, dict | list) for item in value):
        return ",".join(_stringify(item, env) for item in value)
    if isinstance(value, dict | list):
        return json.dumps(value)
    if value is None:
        return ""
    return _resolve_env_vars(str(value), env)


@dataclass
class UploadConfig:
    """Resolved settings for one upload invocation."""

    coverage_files: list[str]
    """Coverage file paths, in merge order."""

    canyon_url: str
    """Canyon server base URL."""

    instrument_cwd: str
    """Working directory the code was instrumented in."""

    canyon_token: str = ""
    """Bearer token for the Canyon API."""

    build_target: str = ""
    """Free-form build target label."""

    scene: dict[str, Any] = field(default_factory=dict)
    """Caller scene tags merged into the client upload."""

    fail_on_error: bool = True
    """Fail the job when the upload fails."""

    mode: PipelineMode = PipelineMode.TWO_PHASE
    """Single- or two-phase upload."""

    build_info: BuildInfoShape = BuildInfoShape.WORKFLOW
    """Shape of the ``build`` object sent with map/init."""

    repo_id_source: RepoIdScheme = RepoIdScheme.REPOSITORY
    """Which environment value supplies ``repoID``."""

    sha: str = ""
    """Explicit commit SHA override."""

    provider: str = ""
    """Explicit provider override."""

    repo_id: str = ""
    """Explicit repository id override."""

    diff_file: str = DEFAULT_DIFF_FILENAME
    """Diff artifact file name, relative to the working directory."""

    timeout_seconds: float | None = None
    """HTTP timeout; None keeps the transport default."""


def load_config_file(path: Path, env: Mapping[str, str] | None = None) -> dict[str, str]:
    """Read ``.canyon.yml``-style defaults keyed by input name.

    Returns an empty mapping when the file is missing or not a mapping.

    Raises:
        InputError: If the file is not valid YAML.
    """
    if not path.is_file():
        return {}

    environ = os.environ if env is None else env
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise InputError(f"Invalid configuration file {path}: {e}") from e

    if not isinstance(parsed, dict):
        logger.warning("Ignoring %s: top level is not a mapping", path)
        return {}

    unknown = sorted(str(key) for key in parsed if key not in INPUT_NAMES)
    if unknown:
        logger.warning("Ignoring unknown keys in %s: %s", path, ", ".join(unknown))

    return {
        name: _stringify(parsed[name], environ) for name in INPUT_NAMES if name in parsed
    }


def resolve_inputs(
    values: Mapping[str, str | None],
    *,
    env: Mapping[str, str] | None = None,
    file_values: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Merge input sources: explicit value, then action input, then config file."""
    file_values = file_values or {}
    resolved: dict[str, str] = {}
    for name in INPUT_NAMES:
        explicit = values.get(name)
        if explicit is not None:
            resolved[name] = explicit.strip()
            continue
        resolved[name] = get_input(name, env=env) or file_values.get(name, "").strip()
    return resolved


def resolve_fail_on_error(inputs: Mapping[str, str]) -> bool:
    """Return the failure policy; unset means fail."""
    return parse_boolean("fail-on-error", inputs.get("fail-on-error", ""), default=True)


def _parse_choice(enum_cls: type[_E], name: str, value: str, default: _E) -> _E:
    if not value:
        return default
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise InputError(f"{name} must be one of: {choices} (got: {value})") from None


def _parse_timeout(value: str) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        raise InputError(f"timeout must be a number of seconds (got: {value})") from None


def build_upload_config(inputs: Mapping[str, str]) -> UploadConfig:
    """Turn resolved input strings into an :class:`UploadConfig`.

    Raises:
        InputError: On missing required inputs or invalid values.
    """
    for name in _REQUIRED_INPUTS:
        if not inputs.get(name):
            raise InputError(f"Input required and not supplied: {name}")

    config = UploadConfig(
        coverage_files=parse_coverage_paths(inputs["coverage-file"]),
        canyon_url=inputs["canyon-url"],
        instrument_cwd=inputs["instrument-cwd"],
        canyon_token=inputs.get("canyon-token", ""),
        build_target=inputs.get("build-target", ""),
        scene=parse_scene(inputs.get("scene", "")),
        fail_on_error=resolve_fail_on_error(inputs),
        mode=_parse_choice(
            PipelineMode, "pipeline-mode", inputs.get("pipeline-mode", ""), PipelineMode.TWO_PHASE
        ),
        build_info=_parse_choice(
            BuildInfoShape, "build-info", inputs.get("build-info", ""), BuildInfoShape.WORKFLOW
        ),
        repo_id_source=_parse_choice(
            RepoIdScheme,
            "repo-id-source",
            inputs.get("repo-id-source", ""),
            RepoIdScheme.REPOSITORY,
        ),
        sha=inputs.get("sha", ""),
        provider=inputs.get("provider", ""),
        repo_id=inputs.get("repo-id", ""),
        diff_file=inputs.get("diff-file", "") or DEFAULT_DIFF_FILENAME,
        timeout_seconds=_parse_timeout(inputs.get("timeout", "")),
    )

    errors = validate_config(config)
    if errors:
        raise InputError("; ".join(errors))
    return config


def validate_config(config: UploadConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.canyon_url.startswith(_URL_SCHEMES):
        errors.append(f"canyon-url must be an http(s) URL (got: {config.canyon_url})")

    if config.timeout_seconds is not None and config.timeout_seconds <= 0:
        errors.append(f"timeout must be positive (got: {config.timeout_seconds})")

    if not config.coverage_files:
        errors.append("coverage-file must name at least one file")

    return errors
