"""mimikry data models: Pydantic v2, frozen."""

from mimikry.models.build import ArtifactWindow, BuildContext, BuildResult
from mimikry.models.config import PipelineOptions, RendererOptions, SelectorOptions
from mimikry.models.pipeline import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    PipelineReport,
    PipelineState,
    PipelineTransition,
    VersionOutcome,
)
from mimikry.models.tags import RegistryTag, RegistryTagsPage, TagCache
from mimikry.models.versioning import InvalidVersionError, Version

__all__ = [
    # versioning
    "Version",
    "InvalidVersionError",
    # tags
    "TagCache",
    "RegistryTag",
    "RegistryTagsPage",
    # build
    "BuildContext",
    "BuildResult",
    "ArtifactWindow",
    # pipeline
    "PipelineState",
    "PipelineTransition",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "VersionOutcome",
    "PipelineReport",
    # config
    "SelectorOptions",
    "RendererOptions",
    "PipelineOptions",
]
