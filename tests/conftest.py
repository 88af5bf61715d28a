"""Shared test fixtures for mimikry."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
import requests

from mimikry.core.template_renderer import TemplateRenderer
from mimikry.errors import BuildError, PushError, RemoveError
from mimikry.models.build import BuildResult
from mimikry.models.config import PipelineOptions, RendererOptions
from mimikry.models.versioning import Version

DOCKERFILE_TEMPLATE = (
    "FROM postgres:{{ version }}\n"
    'LABEL maintainer="{{ maintainer }}"\n'
    "{% if install_tools and tools %}RUN apt-get install -y {{ tools }}\n{% endif %}"
)

INIT_SCRIPT_TEMPLATE = "#!/bin/sh\necho 'postgres {{ version }}'\n"


# ---------------------------------------------------------------------------
# Build engine double
# ---------------------------------------------------------------------------


class FakeBuildEngine:
    """Records every call and hands out distinct ids per build.

    Build ``n`` (1-based) yields ``img-n`` built on ``base-n``.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.builds = 0
        self.fail_build_at: int | None = None
        self.fail_push = False
        self.fail_remove = 0
        self.shared_base: str | None = None
        self.on_build: Callable[[int], None] | None = None
        self.contexts: list[Path] = []

    def _calls(self, op: str) -> list[Any]:
        return [args for name, args in self.calls if name == op]

    @property
    def built(self) -> list[list[str]]:
        return self._calls("build")

    @property
    def pushed(self) -> list[list[str]]:
        return self._calls("push")

    @property
    def removed(self) -> list[list[str]]:
        return self._calls("remove")

    def build(self, context_dir: Path, tags: Sequence[str]) -> BuildResult:
        self.builds += 1
        self.calls.append(("build", list(tags)))
        self.contexts.append(Path(context_dir))
        assert (Path(context_dir) / "Dockerfile").is_file()
        if self.fail_build_at == self.builds:
            raise BuildError(f"build image {tags[0]}: exit code 1")
        if self.on_build is not None:
            self.on_build(self.builds)
        return BuildResult(
            image_id=f"img-{self.builds}",
            base_image_id=self.shared_base or f"base-{self.builds}",
        )

    def tag(self, source_id: str, targets: Sequence[str]) -> None:
        self.calls.append(("tag", (source_id, list(targets))))

    def push(self, tags: Sequence[str]) -> None:
        self.calls.append(("push", list(tags)))
        if self.fail_push:
            raise PushError(f"push image {tags[0]}: denied: requested access to the resource is denied")

    def remove(self, ids: Sequence[str]) -> None:
        self.calls.append(("remove", list(ids)))
        if self.fail_remove > 0:
            self.fail_remove -= 1
            raise RemoveError(f"remove image {ids[0]}: conflict: image is being used")


# ---------------------------------------------------------------------------
# HTTP double
# ---------------------------------------------------------------------------


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, text: str | None = None):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error", response=self)

    def json(self) -> Any:
        if self.text is not None:
            raise ValueError(f"Expecting value: {self.text[:20]!r}")
        return self.payload


class FakeSession:
    """Serves canned responses keyed by URL and records requested URLs."""

    def __init__(self, pages: dict[str, FakeResponse | Exception] | None = None) -> None:
        self.pages = dict(pages or {})
        self.requested: list[str] = []

    def get(self, url: str, timeout: float | None = None) -> FakeResponse:
        self.requested.append(url)
        page = self.pages.get(url)
        if page is None:
            return FakeResponse(status_code=404)
        if isinstance(page, Exception):
            raise page
        return page


def tags_page(names: Sequence[str], next_url: str | None = "") -> FakeResponse:
    return FakeResponse(
        {
            "count": len(names),
            "next": next_url,
            "results": [{"name": name, "full_size": 1} for name in names],
        }
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    """A template set with a Dockerfile and an executable init script."""
    directory = tmp_path / "templates"
    directory.mkdir()
    (directory / "Dockerfile").write_text(DOCKERFILE_TEMPLATE, encoding="utf-8")
    script = directory / "init-db.sh"
    script.write_text(INIT_SCRIPT_TEMPLATE, encoding="utf-8")
    script.chmod(0o755)
    return directory


@pytest.fixture
def renderer(template_dir: Path) -> TemplateRenderer:
    return TemplateRenderer(template_dir, RendererOptions(install_tools_cutoff="10.0.0", tools="vim"))


@pytest.fixture
def build_root(tmp_path: Path) -> Path:
    return tmp_path / "build"


@pytest.fixture
def engine() -> FakeBuildEngine:
    return FakeBuildEngine()


@pytest.fixture
def cancel_event() -> threading.Event:
    return threading.Event()


@pytest.fixture
def make_options(build_root: Path) -> Callable[..., PipelineOptions]:
    """Factory fixture: PipelineOptions targeting ``acme/postgres``."""

    def _factory(**overrides: Any) -> PipelineOptions:
        defaults: dict[str, Any] = {
            "target_repository": "acme/postgres",
            "build_root": build_root,
            "maintainer": "Jane Doe",
        }
        defaults.update(overrides)
        return PipelineOptions(**defaults)

    return _factory


@pytest.fixture
def versions() -> Callable[..., list[Version]]:
    """Factory fixture: parse version strings in the given order."""

    def _factory(*texts: str) -> list[Version]:
        return [Version.parse(text) for text in texts]

    return _factory


@pytest.fixture
def make_session() -> Callable[..., FakeSession]:
    """Factory fixture: a FakeSession serving the given URL -> response map."""
    return FakeSession


@pytest.fixture
def make_response() -> Callable[..., FakeResponse]:
    return FakeResponse


@pytest.fixture
def page() -> Callable[..., FakeResponse]:
    """Factory fixture: one registry tag listing page."""
    return tags_page
