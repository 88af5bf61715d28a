"""``mimikry versions``: list the upstream versions a build would process."""

from __future__ import annotations

import threading
from pathlib import Path

import typer
from rich.markup import escape

from mimikry.cli.runtime import configure_logging, console, install_signal_handlers
from mimikry.config import MimikrySettings
from mimikry.core.orchestrator import Orchestrator
from mimikry.core.template_renderer import TemplateRenderer
from mimikry.core.version_selector import VersionSelector
from mimikry.errors import MimikryError, PipelineCancelled, format_error_chain
from mimikry.monitor.renderer import MonitorRenderer


def versions_cmd(
    version: str = typer.Option(
        "", "--version", "-v", help="Version constraint, e.g. '~12'."
    ),
    source: str = typer.Option(None, "--source", help="Upstream repository."),
    template_dir: Path = typer.Option(
        None, "--template-dir", help="Read the upstream repository from this Dockerfile's FROM."
    ),
    latest: bool = typer.Option(
        False, "--latest", "-l", help="Mark the version that would be tagged 'latest'."
    ),
    refresh_tags: bool = typer.Option(
        False, "--refresh-tags", help="Fetch tags from the registry even with a valid cache."
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Show matching upstream versions in build order."""
    settings = MimikrySettings()
    configure_logging(debug=debug or settings.debug, level=settings.log_level)

    cancel_event = threading.Event()
    restore_signals = install_signal_handlers(cancel_event)
    try:
        repository = source
        if repository is None and template_dir is not None:
            repository = TemplateRenderer(
                template_dir, settings.renderer_options()
            ).source_repository()
        repository = repository or settings.source_repository

        selector = VersionSelector(version, settings.selector_options())
        orchestrator = Orchestrator.from_settings(
            settings, repository, selector, cancel_event=cancel_event
        )
        try:
            versions = orchestrator.resolve_versions(refresh=refresh_tags)
        finally:
            orchestrator.save_tags()
    except PipelineCancelled:
        return
    except MimikryError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(format_error_chain(exc))}")
        raise typer.Exit(code=1)
    finally:
        restore_signals()

    MonitorRenderer(console=console).print_versions(
        repository,
        versions,
        constraint=selector.constraint.expression,
        tag_latest=latest,
    )
