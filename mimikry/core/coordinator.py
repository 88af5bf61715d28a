"""Pipeline Coordinator: builds, tags, pushes and reclaims one version at a time.

Per version, strictly in ascending order:

1. Check for cancellation (only here, at the iteration boundary).
2. Prepare: clear the version's build directory and render the templates.
3. Build with the canonical tag, plus ``latest`` for the last version when
   latest-tagging is enabled.
4. Push every tag, unless this is a dry run.
5. Clean: remove generation N-2, then shift the artifact window.
6. Mark the build directory for deletion at shutdown (unless kept).

The first hard failure ends the run; nothing already pushed is rolled back.
"""

from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Sequence
from pathlib import Path

from mimikry.core.pipeline_machine import PipelineMachine
from mimikry.core.template_renderer import TemplateRenderer
from mimikry.daemon.engine import BuildEngine
from mimikry.errors import (
    BuildError,
    CleanupError,
    ConfigurationError,
    PipelineCancelled,
    PushError,
    RemoveError,
    TemplateRenderError,
    format_error_chain,
)
from mimikry.models.build import ArtifactWindow, BuildResult
from mimikry.models.config import PipelineOptions
from mimikry.models.pipeline import PipelineReport, PipelineState, VersionOutcome
from mimikry.models.versioning import Version

logger = logging.getLogger(__name__)


class PipelineCoordinator:
    """Drives the per-version build pipeline.

    Parameters
    ----------
    engine:
        Build Engine used for every daemon operation. Only one call is in
        flight at any time.
    renderer:
        Template Renderer producing each version's build context.
    options:
        Target repository, build root and run toggles.
    cancel_event:
        Cooperative cancellation signal, checked before each iteration.
    """

    def __init__(
        self,
        engine: BuildEngine,
        renderer: TemplateRenderer,
        options: PipelineOptions,
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.engine = engine
        self.renderer = renderer
        self.options = options
        self.cancel_event = cancel_event or threading.Event()
        self.machine = PipelineMachine()

        self._window = ArtifactWindow()
        self._carry_over: list[str] = []
        self._pending_dirs: list[Path] = []
        self._requested: list[str] = []
        self._outcomes: list[VersionOutcome] = []

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    @property
    def window(self) -> ArtifactWindow:
        return self._window

    @property
    def report(self) -> PipelineReport:
        """Snapshot of the run so far; complete once :meth:`run` returns or raises."""
        return PipelineReport(
            target_repository=self.options.target_repository,
            dry_run=self.options.dry_run,
            requested=list(self._requested),
            outcomes=list(self._outcomes),
            final_state=self.machine.state,
            transitions=self.machine.history,
        )

    def run(self, versions: Sequence[Version]) -> PipelineReport:
        """Process ``versions`` in order and return the run report.

        Raises
        ------
        PipelineCancelled
            When cancellation is observed; :attr:`report` still describes
            the versions completed before it.
        MimikryError
            On the first build, push, render or (strict) cleanup failure.
        """
        self._requested = [version.original for version in versions]
        total = len(versions)

        try:
            for index, version in enumerate(versions):
                if self.cancel_event.is_set():
                    raise PipelineCancelled(
                        f"cancelled before {version.original} ({index}/{total} done)"
                    )
                logger.debug("Processing tag %d/%d: %s", index + 1, total, version)
                self._outcomes.append(self._process(version, is_last=index == total - 1))
        except PipelineCancelled as exc:
            self.machine.cancel(str(exc))
            logger.info("Run cancelled: %s", exc)
            raise
        except Exception as exc:
            self.machine.fail(format_error_chain(exc))
            raise
        finally:
            self._cleanup_build_dirs()

        return self.report

    # ------------------------------------------------------------------
    # One iteration
    # ------------------------------------------------------------------

    def _process(self, version: Version, *, is_last: bool) -> VersionOutcome:
        machine = self.machine
        machine.begin(version.original)

        build_dir = self.prepare(version)

        machine.transition(PipelineState.BUILDING)
        tags = self.tags_for(version, is_last=is_last)
        logger.info("Building image %s", tags[0])
        try:
            result = self.engine.build(build_dir, tags)
        except BuildError as exc:
            raise BuildError(f"build version {version.original}") from exc
        if not result.image_id or not result.base_image_id:
            raise BuildError(f"build version {version.original}: image id or base id is empty")

        machine.transition(PipelineState.TAGGING, detail=", ".join(tags))

        if self.options.dry_run:
            machine.transition(PipelineState.PUSHING, detail="dry run; push skipped")
            logger.info("Dry run enabled; skipping push for image %s", tags[0])
        else:
            machine.transition(PipelineState.PUSHING)
            logger.info("Pushing image %s", tags[0])
            try:
                self.engine.push(tags)
            except PushError as exc:
                raise PushError(f"push version {version.original}") from exc

        machine.transition(PipelineState.CLEANING)
        removed, cleanup_errors = self._reclaim(result)
        self._window = self._window.advance(result)
        machine.transition(PipelineState.IDLE)

        logger.info("Done with image %s", version.original)
        return VersionOutcome(
            version=version.original,
            tags=tags,
            image_id=result.image_id,
            base_image_id=result.base_image_id,
            pushed=not self.options.dry_run,
            removed=removed,
            cleanup_errors=cleanup_errors,
        )

    def tags_for(self, version: Version, *, is_last: bool) -> list[str]:
        """Canonical tag, plus ``latest`` for the final version when enabled."""
        canonical = self.options.image_tag(version.original)
        tags = [canonical]
        if self.options.tag_latest and is_last:
            tags.append(self.options.image_tag("latest"))
            logger.info("Tagging image %s as latest", canonical)
        return tags

    def prepare(self, version: Version) -> Path:
        """Create a clean build directory for ``version`` and render into it."""
        build_dir = self.options.build_root / version.original
        try:
            if build_dir.exists():
                shutil.rmtree(build_dir)
            build_dir.mkdir(parents=True)
        except OSError as exc:
            raise ConfigurationError(f"create build directory {build_dir}: {exc}") from exc

        if not self.options.keep_build_dirs:
            self._pending_dirs.append(build_dir)

        try:
            self.renderer.render(version, self.options.maintainer, build_dir)
        except TemplateRenderError as exc:
            raise TemplateRenderError(f"prepare build directory for {version.original}") from exc
        return build_dir

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def _reclaim(self, current: BuildResult) -> tuple[list[str], list[str]]:
        """Remove generation N-2 (plus anything a failed cleanup left behind)."""
        retained = {
            self._window.previous_image_id,
            self._window.previous_base_id,
            current.image_id,
            current.base_image_id,
        }
        batch = [image_id for image_id in self._carry_over if image_id not in retained]
        for image_id in self._window.removal_batch(current):
            if image_id not in batch:
                batch.append(image_id)
        if not batch:
            return [], []

        logger.info("Removing build artifacts")
        try:
            self.engine.remove(batch)
        except RemoveError as exc:
            if self.options.strict_cleanup:
                raise RemoveError("remove superseded images") from exc
            cleanup = CleanupError(f"remove superseded images {', '.join(batch)}: {exc}")
            logger.warning("%s; retrying next cycle", cleanup)
            self._carry_over = batch
            return [], [str(cleanup)]

        self._carry_over = []
        return batch, []

    def _cleanup_build_dirs(self) -> None:
        for build_dir in self._pending_dirs:
            logger.debug("Removing build directory %s", build_dir)
            try:
                shutil.rmtree(build_dir)
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.error("%s", CleanupError(f"remove build directory {build_dir}: {exc}"))
        self._pending_dirs = []
