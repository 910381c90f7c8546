"""canyon CLI: top-level command group."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler

from canyon_uploader import __version__
from canyon_uploader.config import INPUT_NAMES, PipelineMode
from canyon_uploader.coverage import load_coverage_files, summarize_coverage, summarize_files
from canyon_uploader.errors import CoverageParseError
from canyon_uploader.payload import BuildInfoShape
from canyon_uploader.pipeline import run_upload
from canyon_uploader.reporters.terminal import reporter
from canyon_uploader.utils.actions import ActionsLogHandler
from canyon_uploader.utils.ci_context import RepoIdScheme, is_github_actions

_PACKAGE_LOGGER = "canyon_uploader"


def _configure_logging(*, verbose: bool) -> None:
    """Attach a single handler to the package logger.

    Inside GitHub Actions records become workflow commands; elsewhere they
    are rendered by rich on stderr.
    """
    handler: logging.Handler
    if is_github_actions():
        handler = ActionsLogHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)

    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    for existing in package_logger.handlers[:]:
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _choice_values(enum_cls: Any) -> list[str]:
    return [member.value for member in enum_cls]


def _collect_input_values(options: dict[str, Any]) -> dict[str, str | None]:
    """Map click option values onto input names; unset options stay None."""
    values: dict[str, str | None] = {}
    for name in INPUT_NAMES:
        raw = options.get(name.replace("-", "_"))
        if raw is None:
            values[name] = None
        elif isinstance(raw, bool):
            values[name] = "true" if raw else "false"
        else:
            values[name] = str(raw)
    return values


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="canyon")
@click.pass_context
def cli(ctx: click.Context, *, verbose: bool) -> None:
    """canyon: merge coverage reports and upload them to a Canyon server."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose=verbose)


@cli.command()
@click.option(
    "--coverage-file",
    default=None,
    help="Comma-separated list of coverage-final.json files.",
)
@click.option("--canyon-url", default=None, help="Base URL of the Canyon server.")
@click.option("--canyon-token", default=None, help="Bearer token for the Canyon API.")
@click.option(
    "--instrument-cwd",
    default=None,
    help="Working directory the code was instrumented in.",
)
@click.option("--build-target", default=None, help="Free-form build target label.")
@click.option("--scene", default=None, help="JSON object merged into the upload scene.")
@click.option(
    "--fail-on-error/--no-fail-on-error",
    default=None,
    help="Fail the job when the upload fails (default: fail).",
)
@click.option(
    "--pipeline-mode",
    type=click.Choice(_choice_values(PipelineMode), case_sensitive=False),
    default=None,
    help="Upload the map only, or the map followed by client coverage.",
)
@click.option(
    "--build-info",
    type=click.Choice(_choice_values(BuildInfoShape), case_sensitive=False),
    default=None,
    help="Shape of the build metadata sent with the map.",
)
@click.option(
    "--repo-id-source",
    type=click.Choice(_choice_values(RepoIdScheme), case_sensitive=False),
    default=None,
    help="Use owner/repo or the numeric repository id as repoID.",
)
@click.option("--sha", default=None, help="Commit SHA override.")
@click.option("--provider", default=None, help="VCS provider override.")
@click.option("--repo-id", default=None, help="Repository id override.")
@click.option("--diff-file", default=None, help="Diff artifact name (default: diff.json).")
@click.option("--timeout", type=click.FLOAT, default=None, help="HTTP timeout in seconds.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (default: .canyon.yml).",
)
def upload(config_path: Path | None, **kwargs: Any) -> None:
    """Merge coverage files and upload them to Canyon.

    Options left unset fall back to action inputs (INPUT_*), then to the
    configuration file.
    """
    outcome = run_upload(_collect_input_values(kwargs), config_path=config_path)

    if outcome.success and outcome.result is not None:
        result = outcome.result
        if result.summary is not None:
            reporter.print_coverage_summary(result.summary)
        reporter.print_upload_result(
            result.build_hash,
            result.scene_key if outcome.mode is PipelineMode.TWO_PHASE else None,
        )
        return

    if outcome.failed:
        raise SystemExit(1)

    reporter.print_warning("Coverage upload failed; fail-on-error is disabled, not failing the job")


@cli.command()
@click.argument(
    "coverage_files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False),
)
@click.option("--per-file", is_flag=True, help="Show one row per source file.")
def summary(coverage_files: tuple[str, ...], *, per_file: bool) -> None:
    """Print coverage totals for local files without uploading them."""
    reporter.print_header("canyon summary")

    try:
        coverage = load_coverage_files(coverage_files)
    except CoverageParseError as e:
        reporter.print_error(str(e))
        raise click.Abort from e

    if not coverage:
        reporter.print_error("No coverage data found in files")
        raise click.Abort

    reporter.print_coverage_summary(
        summarize_coverage(coverage),
        summarize_files(coverage) if per_file else None,
    )
