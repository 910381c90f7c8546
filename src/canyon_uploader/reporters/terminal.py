"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from canyon_uploader.coverage.istanbul import CounterSummary, CoverageSummary

console = Console()

# Display limits
_MAX_FILES_DISPLAY = 25
_MAX_FILE_PATH_LENGTH = 60

_HIGH_COVERAGE = 80.0
_MEDIUM_COVERAGE = 50.0


class CLIReporter:
    """Rich terminal output for coverage summaries and upload results."""

    def __init__(self, console_: Console | None = None) -> None:
        self.console = console_ or console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    def print_coverage_summary(
        self,
        summary: CoverageSummary,
        per_file: dict[str, CoverageSummary] | None = None,
    ) -> None:
        """Print a coverage summary table, optionally with one row per file."""
        table = Table(title="Coverage Summary", title_style="bold cyan")
        table.add_column("File", style="bold")
        table.add_column("Statements", justify="right")
        table.add_column("Functions", justify="right")
        table.add_column("Branches", justify="right")

        if per_file:
            for file_path, file_summary in sorted(per_file.items())[:_MAX_FILES_DISPLAY]:
                table.add_row(
                    self._shorten_path(file_path),
                    self._format_counter(file_summary.statements),
                    self._format_counter(file_summary.functions),
                    self._format_counter(file_summary.branches),
                )
            hidden = len(per_file) - _MAX_FILES_DISPLAY
            if hidden > 0:
                table.add_row(f"[dim]… {hidden} more files[/dim]", "", "", "")
            table.add_section()

        table.add_row(
            f"[bold]Overall ({summary.files} files)[/bold]",
            self._format_counter(summary.statements, bold=True),
            self._format_counter(summary.functions, bold=True),
            self._format_counter(summary.branches, bold=True),
        )

        self.console.print(table)

    def print_upload_result(self, build_hash: str | None, scene_key: str | None = None) -> None:
        """Print the identifiers returned by the Canyon server."""
        self.print_success(f"Coverage uploaded. Build hash: [bold]{build_hash or '-'}[/bold]")
        if scene_key is not None:
            self.print_info(f"Scene key: {scene_key}")

    def _format_counter(self, counter: CounterSummary, *, bold: bool = False) -> str:
        pct = counter.percentage
        color = self._get_coverage_color(pct)
        style = f"bold {color}" if bold else color
        return f"[{style}]{pct:.1f}%[/{style}] [dim]({counter.covered}/{counter.total})[/dim]"

    def _get_coverage_color(self, percentage: float) -> str:
        """Get a color based on coverage percentage."""
        if percentage >= _HIGH_COVERAGE:
            return "green"
        if percentage >= _MEDIUM_COVERAGE:
            return "yellow"
        return "red"

    def _shorten_path(self, file_path: str) -> str:
        """Show paths relative to the working directory and truncate long ones."""
        try:
            display = str(Path(file_path).relative_to(Path.cwd()))
        except ValueError:
            display = file_path
        if len(display) > _MAX_FILE_PATH_LENGTH:
            display = "…" + display[-(_MAX_FILE_PATH_LENGTH - 1) :]
        return display


# Singleton instance for easy import
reporter = CLIReporter()
