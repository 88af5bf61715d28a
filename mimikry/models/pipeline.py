"""Pipeline state machine models and the run report."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PipelineState(str, Enum):
    """Per-iteration state of the Pipeline Coordinator."""

    IDLE = "idle"
    PREPARING = "preparing"
    BUILDING = "building"
    TAGGING = "tagging"
    PUSHING = "pushing"
    CLEANING = "cleaning"
    CANCELLED = "cancelled"
    FAILED = "failed"


_ABORTABLE = {PipelineState.CANCELLED, PipelineState.FAILED}

# CANCELLED and FAILED are absorbing: no outgoing transitions.
VALID_TRANSITIONS: dict[PipelineState, set[PipelineState]] = {
    PipelineState.IDLE: {PipelineState.PREPARING} | _ABORTABLE,
    PipelineState.PREPARING: {PipelineState.BUILDING} | _ABORTABLE,
    PipelineState.BUILDING: {PipelineState.TAGGING} | _ABORTABLE,
    PipelineState.TAGGING: {PipelineState.PUSHING} | _ABORTABLE,
    PipelineState.PUSHING: {PipelineState.CLEANING} | _ABORTABLE,
    PipelineState.CLEANING: {PipelineState.IDLE} | _ABORTABLE,
    PipelineState.CANCELLED: set(),
    PipelineState.FAILED: set(),
}

TERMINAL_STATES = frozenset(_ABORTABLE)


class PipelineTransition(BaseModel):
    """A single recorded state transition."""

    model_config = ConfigDict(frozen=True)

    from_state: PipelineState
    to_state: PipelineState
    version: str = ""  # original text of the version being processed
    detail: str = ""
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class VersionOutcome(BaseModel):
    """What happened to one version during the run."""

    model_config = ConfigDict(frozen=True)

    version: str
    tags: list[str]
    image_id: str
    base_image_id: str
    pushed: bool
    removed: list[str] = []
    cleanup_errors: list[str] = []


class PipelineReport(BaseModel):
    """Summary returned by the coordinator, also on cancellation."""

    model_config = ConfigDict(frozen=True)

    target_repository: str
    dry_run: bool
    requested: list[str] = []
    outcomes: list[VersionOutcome] = []
    final_state: PipelineState = PipelineState.IDLE
    transitions: list[PipelineTransition] = []

    @property
    def completed(self) -> int:
        return len(self.outcomes)

    @property
    def cancelled(self) -> bool:
        return self.final_state == PipelineState.CANCELLED
