"""Rich terminal renderer for build and stamp results.

Color scheme
------------
- green     : PUBLISHED / COMPILED
- red       : FAILED
- dim       : stage skipped by its entry guard
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from binstamp.models.artifacts import StampResult
from binstamp.models.build import BatchReport, BuildResult
from binstamp.models.stages import BuildState

# ---------------------------------------------------------------------------
# State -> Rich markup
# ---------------------------------------------------------------------------

_STATE_ICONS: dict[BuildState, str] = {
    BuildState.PUBLISHED: "[bold green]PUBLISHED[/bold green]",
    BuildState.COMPILED: "[green]COMPILED[/green]",
    BuildState.PATCHED: "[yellow]PATCHED[/yellow]",
    BuildState.ACQUIRED: "[yellow]ACQUIRED[/yellow]",
    BuildState.UNACQUIRED: "[dim]UNACQUIRED[/dim]",
    BuildState.FAILED: "[bold red]FAILED[/bold red]",
}


class ResultRenderer:
    """Renders ``BatchReport`` and ``StampResult`` as Rich renderables.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_batch(self, report: BatchReport) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Version", style="cyan")
        table.add_column("Platform")
        table.add_column("Arch")
        table.add_column("State", justify="center")
        table.add_column("Artifact / Error", min_width=30)
        table.add_column("Skipped", style="dim")

        for result in report.results:
            table.add_row(
                result.spec.runtime_version,
                result.spec.platform_tag,
                result.spec.arch,
                _STATE_ICONS.get(result.state, result.state.value),
                result.artifact_name,
                self._skipped(result),
            )
        for failure in report.failures:
            where = f"{failure.stage_id}: " if failure.stage_id else ""
            table.add_row(
                failure.spec.runtime_version,
                failure.spec.platform_tag,
                failure.spec.arch,
                _STATE_ICONS[BuildState.FAILED],
                Text(f"{where}{failure.error}", style="red"),
                "[dim]-[/dim]",
            )

        summary = (
            f"[bold]Built:[/bold] {len(report.results)}  |  "
            f"[bold]Failed:[/bold] {len(report.failures)}"
        )
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title="[bold]binstamp build summary[/bold]",
            border_style="green" if report.ok else "red",
            padding=(1, 2),
        )

    def render_stamp(self, result: StampResult) -> Panel:
        return Panel(
            f"[bold]Output:[/bold]   {escape(str(result.output_path))}\n"
            f"[bold]Artifact:[/bold] {result.artifact_name}\n"
            f"[bold]Slot:[/bold]     {result.slot_size}MB "
            f"(bundle {result.bundle_length} bytes at offset {result.offset})",
            title="[bold green]Stamped[/bold green]",
            border_style="green",
        )

    def print_batch(self, report: BatchReport) -> None:
        self.console.print(self.render_batch(report))

    def print_stamp(self, result: StampResult) -> None:
        self.console.print(self.render_stamp(result))

    @staticmethod
    def _skipped(result: BuildResult) -> str:
        return ", ".join(result.skipped_stages) or "-"
