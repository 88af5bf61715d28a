"""Rich terminal rendering for resolved versions and pipeline reports.

Color scheme
------------
- green     : pushed
- cyan      : built (dry run)
- yellow    : cleanup warnings
- bold red  : FAILED
- magenta   : CANCELLED
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mimikry.models.pipeline import PipelineReport, PipelineState
from mimikry.models.versioning import Version

_STATE_ICONS: dict[PipelineState, str] = {
    PipelineState.IDLE: "[green]COMPLETE[/green]",
    PipelineState.FAILED: "[bold red]FAILED[/bold red]",
    PipelineState.CANCELLED: "[magenta]CANCELLED[/magenta]",
}


def _short(image_id: str) -> str:
    return image_id[:12]


class MonitorRenderer:
    """Renders version lists and :class:`PipelineReport` as Rich output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def render_versions(
        self,
        repository: str,
        versions: Sequence[Version],
        *,
        constraint: str = "",
        tag_latest: bool = False,
    ) -> Table:
        title = f"{repository} versions"
        if constraint:
            title += f" matching {constraint!r}"
        table = Table(title=title)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Version", style="cyan")
        table.add_column("Normalized")
        table.add_column("Latest", justify="center")

        for index, version in enumerate(versions, start=1):
            latest = tag_latest and index == len(versions)
            table.add_row(
                str(index),
                version.original,
                version.canonical,
                "[green]Yes[/green]" if latest else "",
            )
        return table

    def print_versions(self, repository: str, versions: Sequence[Version], **kwargs) -> None:
        if not versions:
            self.console.print(f"[dim]No {repository} versions match.[/dim]")
            return
        self.console.print(self.render_versions(repository, versions, **kwargs))

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    def render_report(self, report: PipelineReport) -> Panel:
        table = Table(show_header=True, header_style="bold", expand=True)
        table.add_column("Version", style="cyan", no_wrap=True)
        table.add_column("Tags")
        table.add_column("Image", no_wrap=True)
        table.add_column("Base", no_wrap=True)
        table.add_column("Pushed", justify="center")
        table.add_column("Removed")

        for outcome in report.outcomes:
            if outcome.pushed:
                pushed = "[green]Yes[/green]"
            else:
                pushed = "[cyan]dry run[/cyan]"
            removed = ", ".join(_short(i) for i in outcome.removed) or "[dim]-[/dim]"
            if outcome.cleanup_errors:
                removed = f"[yellow]cleanup failed[/yellow] {removed}"
            table.add_row(
                outcome.version,
                "\n".join(outcome.tags),
                _short(outcome.image_id),
                _short(outcome.base_image_id),
                pushed,
                removed,
            )

        state = _STATE_ICONS.get(report.final_state, report.final_state.value)
        mode = " (dry run)" if report.dry_run else ""
        title = (
            f"[bold]{report.target_repository}{mode}[/bold] "
            f"{report.completed}/{len(report.requested)} {state}"
        )
        border = "green" if report.final_state == PipelineState.IDLE else "red"
        return Panel(table, title=title, border_style=border)

    def print_report(self, report: PipelineReport) -> None:
        self.console.print(self.render_report(report))
