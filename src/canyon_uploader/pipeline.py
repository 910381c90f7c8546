"""Upload pipeline - load coverage, build payloads and upload to Canyon."""

from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import requests

from canyon_uploader.config import (
    DEFAULT_CONFIG_FILENAME,
    PipelineMode,
    UploadConfig,
    build_upload_config,
    load_config_file,
    resolve_fail_on_error,
    resolve_inputs,
)
from canyon_uploader.coverage import load_coverage_files, load_diff, summarize_coverage
from canyon_uploader.errors import CanyonUploadError, EmptyCoverageError
from canyon_uploader.payload import (
    BuildInfoShape,
    build_client_payload,
    build_map_init_payload,
    build_metadata,
    build_scene,
)
from canyon_uploader.utils.actions import mask_value, set_output
from canyon_uploader.utils.canyon_client import post_client_coverage, post_map_init
from canyon_uploader.utils.ci_context import (
    ProvenanceProvider,
    is_github_actions,
    read_event_payload,
    read_provenance,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from canyon_uploader.coverage import CoverageSummary

logger = logging.getLogger(__name__)

# Everything here is caught at the run_upload boundary and turned into an outcome
_FATAL_ERRORS = (CanyonUploadError, requests.RequestException, ValueError, OSError)


@dataclass
class UploadResult:
    """Identifiers returned by a successful upload."""

    build_hash: str | None
    """Build hash assigned by the Canyon server."""

    scene_key: str | None = None
    """Scene key from the client upload (two-phase only)."""

    entries: int = 0
    """Number of coverage entries uploaded."""

    summary: CoverageSummary | None = None
    """Counter totals of the uploaded coverage."""


@dataclass
class UploadOutcome:
    """Result of one invocation after the failure policy was applied."""

    success: bool
    """True when every upload step succeeded."""

    failed: bool
    """True when the invocation must be reported as failed."""

    result: UploadResult | None = None
    """Upload identifiers on success."""

    error: str | None = None
    """Error message on failure."""

    mode: PipelineMode | None = None
    """Pipeline shape that ran, when configuration loaded."""


class UploadPipeline:
    """Sequence one coverage upload.

    Steps run strictly in order and stop at the first fatal error:
    provenance, coverage loading, diff loading, map/init, then (two-phase
    only) the client upload.
    """

    def __init__(
        self,
        config: UploadConfig,
        *,
        provenance_provider: ProvenanceProvider | None = None,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config
        self._cwd = cwd or Path.cwd()
        self._env = os.environ if env is None else env
        self._provenance_provider = provenance_provider or functools.partial(
            read_provenance, self._env, scheme=config.repo_id_source
        )

    def execute(self) -> UploadResult:
        """Run the upload.

        Raises:
            CanyonUploadError: On any fatal pipeline condition.
            requests.RequestException: If the Canyon server cannot be reached.
            ValueError: If a 2xx response body is not valid JSON.
            OSError: If an output or working file cannot be accessed.
        """
        config = self._config

        provenance = self._provenance_provider()
        for key, value in provenance.as_dict().items():
            logger.info("%s: %s", key, value)

        logger.info("Loading coverage files: %s", ", ".join(config.coverage_files))
        coverage = load_coverage_files(config.coverage_files, cwd=self._cwd)
        if not coverage:
            raise EmptyCoverageError("No coverage data found in files")
        logger.info("Loaded %d coverage entries", len(coverage))
        summary = summarize_coverage(coverage)

        diff = load_diff(self._cwd, filename=config.diff_file)
        event = read_event_payload(self._env) if config.build_info is BuildInfoShape.EVENT else None

        map_init_payload = build_map_init_payload(
            coverage,
            provenance,
            config.instrument_cwd,
            config.build_target,
            diff,
            build=build_metadata(provenance, config.build_info, event),
            sha=config.sha,
            provider=config.provider,
            repo_id=config.repo_id,
        )

        logger.info("Uploading coverage map initialization...")
        map_init = post_map_init(
            config.canyon_url,
            map_init_payload,
            config.canyon_token or None,
            timeout_seconds=config.timeout_seconds,
        )

        if config.mode is PipelineMode.SINGLE_PHASE:
            logger.info("Coverage upload successful. BuildHash: %s", map_init.build_hash)
            return UploadResult(
                build_hash=map_init.build_hash, entries=len(coverage), summary=summary
            )

        logger.info("Map init successful. BuildHash: %s", map_init.build_hash)

        client_payload = build_client_payload(coverage, build_scene(config.scene, provenance))
        logger.info("Uploading coverage data...")
        client = post_client_coverage(
            config.canyon_url,
            client_payload,
            config.canyon_token or None,
            timeout_seconds=config.timeout_seconds,
        )

        build_hash = client.build_hash or map_init.build_hash
        logger.info(
            "Coverage upload successful. BuildHash: %s, SceneKey: %s", build_hash, client.scene_key
        )
        return UploadResult(
            build_hash=build_hash,
            scene_key=client.scene_key,
            entries=len(coverage),
            summary=summary,
        )


def run_upload(
    values: Mapping[str, str | None],
    *,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
    provenance_provider: ProvenanceProvider | None = None,
    config_path: Path | None = None,
) -> UploadOutcome:
    """Resolve configuration, run the pipeline and publish outputs.

    Never raises for pipeline failures: every fatal error is logged and
    returned as an outcome whose ``failed`` flag follows ``fail-on-error``
    (true unless configured otherwise).

    Args:
        values: Explicitly supplied inputs keyed by input name (None = unset).
        env: Environment mapping. Defaults to ``os.environ``.
        cwd: Working directory for coverage, diff and config files.
        provenance_provider: Override for environment provenance.
        config_path: Config file path. Defaults to ``.canyon.yml`` in *cwd*.

    Returns:
        The invocation outcome.
    """
    environ = os.environ if env is None else env
    base = cwd or Path.cwd()
    fail_on_error = True
    mode: PipelineMode | None = None

    try:
        file_values = load_config_file(config_path or base / DEFAULT_CONFIG_FILENAME, environ)
        inputs = resolve_inputs(values, env=environ, file_values=file_values)
        fail_on_error = resolve_fail_on_error(inputs)

        config = build_upload_config(inputs)
        mode = config.mode
        if config.canyon_token and is_github_actions(environ):
            mask_value(config.canyon_token)

        result = UploadPipeline(
            config, provenance_provider=provenance_provider, cwd=base, env=environ
        ).execute()

        set_output("build-hash", result.build_hash or "", env=environ)
        if config.mode is PipelineMode.TWO_PHASE:
            set_output("scene-key", result.scene_key or "", env=environ)
    except _FATAL_ERRORS as e:
        message = str(e)
        logger.error("%s", message)
        if not fail_on_error:
            logger.info("fail-on-error is false; continuing without failing the job")
        return UploadOutcome(success=False, failed=fail_on_error, error=message, mode=mode)

    return UploadOutcome(success=True, failed=False, result=result, mode=mode)
