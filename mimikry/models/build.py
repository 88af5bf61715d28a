"""Per-iteration build models: context, build result, artifact window."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from mimikry.models.versioning import Version


class BuildContext(BaseModel):
    """Everything the renderer needs to produce one version's build directory.

    Fully derived from the version and run options; never persisted.
    """

    model_config = ConfigDict(frozen=True)

    directory: Path
    version: Version
    maintainer: str
    install_tools: bool
    tools: str

    def template_data(self) -> dict[str, object]:
        """Values exposed to every template."""
        return {
            "version": self.version.original,
            "maintainer": self.maintainer,
            "install_tools": self.install_tools,
            "tools": self.tools,
        }


class BuildResult(BaseModel):
    """Identifiers resolved after a successful build."""

    model_config = ConfigDict(frozen=True)

    image_id: str
    base_image_id: str


class ArtifactWindow(BaseModel):
    """Trailing window of locally retained image generations.

    ``previous_*`` is the generation built one iteration ago and
    ``superseded_*`` the one before it. After generation N is built, the
    superseded generation (N-2) is reclaimed and the window shifts by one,
    so N-1 survives one extra iteration and at most two generations remain.
    """

    model_config = ConfigDict(frozen=True)

    previous_image_id: str = ""
    previous_base_id: str = ""
    superseded_image_id: str = ""
    superseded_base_id: str = ""

    def removal_batch(self, current: BuildResult) -> list[str]:
        """Identifiers of generation N-2 that nothing retained still uses."""
        retained = {
            self.previous_image_id,
            self.previous_base_id,
            current.image_id,
            current.base_image_id,
        }
        batch: list[str] = []
        for image_id in (self.superseded_image_id, self.superseded_base_id):
            if image_id and image_id not in retained and image_id not in batch:
                batch.append(image_id)
        return batch

    def advance(self, current: BuildResult) -> ArtifactWindow:
        return ArtifactWindow(
            previous_image_id=current.image_id,
            previous_base_id=current.base_image_id,
            superseded_image_id=self.previous_image_id,
            superseded_base_id=self.previous_base_id,
        )
