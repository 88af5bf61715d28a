"""``mimikry build``: build, tag and push one image per matching upstream version."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import typer
from rich.markup import escape

from mimikry.cli.runtime import configure_logging, console, install_signal_handlers
from mimikry.config import MimikrySettings
from mimikry.core.coordinator import PipelineCoordinator
from mimikry.core.orchestrator import Orchestrator
from mimikry.core.template_renderer import TemplateRenderer
from mimikry.core.version_selector import VersionSelector
from mimikry.daemon.client import DaemonConnection
from mimikry.daemon.engine import DockerBuildEngine
from mimikry.errors import MimikryError, PipelineCancelled, format_error_chain
from mimikry.models.config import PipelineOptions
from mimikry.monitor.renderer import MonitorRenderer

logger = logging.getLogger(__name__)


def build_cmd(
    template_dir: Path = typer.Argument(..., help="Directory holding the Dockerfile template."),
    target_repository: str = typer.Argument(..., help="Repository the images are pushed to."),
    maintainer: str = typer.Option(
        None, "--maintainer", "-m", help="Maintainer written into the images."
    ),
    build_dir: Path = typer.Option(
        None, "--build", "-b", help="Root directory for per-version build contexts."
    ),
    version: str = typer.Option(
        "", "--version", "-v", help="Version constraint, e.g. '>= 12, < 14'."
    ),
    latest: bool = typer.Option(
        False, "--latest", "-l", help="Also tag the highest version as 'latest'."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Build and tag but do not push."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
    keep: bool = typer.Option(False, "--keep", help="Keep build directories after the run."),
    source: str = typer.Option(
        None, "--source", help="Upstream repository; defaults to the Dockerfile's FROM image."
    ),
    refresh_tags: bool = typer.Option(
        False, "--refresh-tags", help="Fetch tags from the registry even with a valid cache."
    ),
    strict_cleanup: bool = typer.Option(
        False, "--strict-cleanup", help="Fail the run when a stale image cannot be removed."
    ),
) -> None:
    """Build and push images for every upstream version that matches."""
    settings = MimikrySettings()
    configure_logging(debug=debug or settings.debug, level=settings.log_level)

    cancel_event = threading.Event()
    restore_signals = install_signal_handlers(cancel_event)
    coordinator: PipelineCoordinator | None = None
    try:
        renderer = TemplateRenderer(template_dir, settings.renderer_options())
        repository = source or renderer.source_repository() or settings.source_repository
        selector = VersionSelector(version, settings.selector_options())
        options = PipelineOptions(
            target_repository=target_repository,
            build_root=build_dir or settings.build_dir,
            maintainer=maintainer or settings.maintainer,
            tag_latest=latest,
            dry_run=dry_run,
            keep_build_dirs=keep,
            strict_cleanup=strict_cleanup,
        )
        orchestrator = Orchestrator.from_settings(
            settings, repository, selector, cancel_event=cancel_event
        )

        with DaemonConnection.from_env() as connection:
            if dry_run:
                logger.debug("Dry run, skipping registry login")
            else:
                connection.login(
                    settings.docker_username,
                    settings.docker_password.get_secret_value(),
                    settings.registry,
                )
            engine = DockerBuildEngine(connection, cancel_event=cancel_event)
            coordinator = PipelineCoordinator(
                engine, renderer, options, cancel_event=cancel_event
            )
            orchestrator.run(coordinator, refresh=refresh_tags)
    except PipelineCancelled as exc:
        logger.info("Cancelled: %s", exc)
    except MimikryError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(format_error_chain(exc))}")
        raise typer.Exit(code=1)
    finally:
        restore_signals()
        if coordinator is not None and coordinator.report.requested:
            MonitorRenderer(console=console).print_report(coordinator.report)
