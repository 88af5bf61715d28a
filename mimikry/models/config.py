"""Option models passed explicitly into the selector, renderer, and coordinator."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict


class SelectorOptions(BaseModel):
    """Version Selector policy."""

    model_config = ConfigDict(frozen=True)

    # Only plain numeric tags; rejects "latest", "alpine", "12-bullseye", ...
    tag_pattern: str = r"^\d+(\.\d+)?(\.\d+)?$"


class RendererOptions(BaseModel):
    """Template Renderer policy."""

    model_config = ConfigDict(frozen=True)

    install_tools_cutoff: str = "10.0.0"
    tools: str = "vim"
    max_workers: int | None = None  # defaults to the number of templates


class PipelineOptions(BaseModel):
    """Per-run options for the Pipeline Coordinator."""

    model_config = ConfigDict(frozen=True)

    target_repository: str
    build_root: Path = Path("./mimikry")
    maintainer: str = "Unknown"
    tag_latest: bool = False
    dry_run: bool = False
    keep_build_dirs: bool = False
    strict_cleanup: bool = False

    def image_tag(self, label: str) -> str:
        return f"{self.target_repository}:{label}"
