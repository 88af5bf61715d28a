"""Build Engine: build, tag, push and remove images on the container daemon.

:class:`BuildEngine` is the contract the coordinator depends on;
:class:`DockerBuildEngine` implements it on top of the docker SDK's
low-level API so that build and push responses can be streamed and scanned
for embedded error lines.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import requests
from docker.errors import APIError, DockerException, ImageNotFound

from mimikry.daemon.client import DaemonConnection
from mimikry.daemon.stream import DaemonStream
from mimikry.errors import BuildError, PushError, RemoveError, TagError
from mimikry.models.build import BuildResult

logger = logging.getLogger(__name__)

# Layers the daemon only knows from history, not as local images.
MISSING_LAYER = "<missing>"

_TRANSPORT_ERRORS = (APIError, DockerException, requests.RequestException)


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


@runtime_checkable
class BuildEngine(Protocol):
    """Blocking image operations the Pipeline Coordinator relies on."""

    def build(self, context_dir: Path, tags: Sequence[str]) -> BuildResult:
        """Build ``context_dir`` and apply every entry of ``tags``.

        ``tags[0]`` is the canonical reference used to resolve the new image.
        """
        ...

    def tag(self, source_id: str, targets: Sequence[str]) -> None:
        ...

    def push(self, tags: Sequence[str]) -> None:
        """Push each tag in order; the first failure aborts the call."""
        ...

    def remove(self, ids: Sequence[str]) -> None:
        """Force-remove each image; already removed images count as success."""
        ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def split_reference(reference: str) -> tuple[str, str]:
    """Split ``repo[:tag]`` into repository and tag, minding registry ports."""
    colon = reference.rfind(":")
    if colon > reference.rfind("/"):
        return reference[:colon], reference[colon + 1 :]
    return reference, "latest"


def short_id(image_id: str) -> str:
    return image_id.removeprefix("sha256:")


# ---------------------------------------------------------------------------
# Docker implementation
# ---------------------------------------------------------------------------


class DockerBuildEngine:
    """:class:`BuildEngine` backed by a :class:`DaemonConnection`.

    Parameters
    ----------
    connection:
        The run's daemon connection. Its registry login, if any, is used
        for pushes.
    cancel_event:
        Propagated into every streamed response; a set event aborts the
        stream at the next line.
    dockerfile:
        Name of the Dockerfile inside each build context.
    """

    def __init__(
        self,
        connection: DaemonConnection,
        *,
        cancel_event: threading.Event | None = None,
        dockerfile: str = "Dockerfile",
    ) -> None:
        self._connection = connection
        self._cancel_event = cancel_event
        self._dockerfile = dockerfile

    @property
    def _api(self):
        return self._connection.api

    def _drain(self, chunks: Iterable[bytes | str]) -> list[str]:
        return DaemonStream(chunks, cancel_event=self._cancel_event).drain()

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self, context_dir: Path, tags: Sequence[str]) -> BuildResult:
        if not tags:
            raise BuildError("build image: no tags provided")
        canonical = tags[0]
        context_dir = Path(context_dir)
        if not (context_dir / self._dockerfile).is_file():
            raise BuildError(
                f"build image {canonical}: no {self._dockerfile} in {context_dir}"
            )

        logger.debug("Starting build for %s", list(tags))
        try:
            chunks = self._api.build(
                path=str(context_dir),
                tag=canonical,
                dockerfile=self._dockerfile,
                rm=True,
                decode=False,
            )
            errors = self._drain(chunks)
        except _TRANSPORT_ERRORS as exc:
            raise BuildError(f"build image {canonical}: {exc}") from exc

        if errors:
            raise BuildError(f"build image {canonical}: {'; '.join(errors)}")
        logger.debug("Build finished for %s", list(tags))

        result = self._resolve_ids(canonical)
        if len(tags) > 1:
            try:
                self.tag(result.image_id, tags[1:])
            except TagError as exc:
                raise BuildError(f"build image {canonical}: {exc}") from exc
        return result

    def _resolve_ids(self, reference: str) -> BuildResult:
        """Find the new image's ID and the ID of the image it was built on.

        The base image is the last history entry that exists locally.
        """
        try:
            images = self._api.images(name=reference)
        except _TRANSPORT_ERRORS as exc:
            raise BuildError(f"list images for {reference}: {exc}") from exc
        if not images:
            raise BuildError(f"image {reference!r} not found after build")
        image_id = short_id(images[0]["Id"])

        try:
            history = self._api.history(image_id)
        except _TRANSPORT_ERRORS as exc:
            raise BuildError(f"get image history for {reference}: {exc}") from exc

        base_id = ""
        for entry in history:
            entry_id = entry.get("Id") or ""
            if entry_id and entry_id != MISSING_LAYER:
                base_id = short_id(entry_id)
        if not base_id:
            raise BuildError(f"could not find base image id for {reference!r}")

        logger.debug("Image %s built based on parent image %s", image_id, base_id)
        return BuildResult(image_id=image_id, base_image_id=base_id)

    # ------------------------------------------------------------------
    # Tag / push / remove
    # ------------------------------------------------------------------

    def tag(self, source_id: str, targets: Sequence[str]) -> None:
        for target in targets:
            repository, label = split_reference(target)
            logger.debug("Tagging %s as %s", source_id, target)
            try:
                tagged = self._api.tag(source_id, repository, tag=label)
            except _TRANSPORT_ERRORS as exc:
                raise TagError(f"tag image {source_id} as {target}: {exc}") from exc
            if not tagged:
                raise TagError(f"tag image {source_id} as {target}: daemon refused")

    def push(self, tags: Sequence[str]) -> None:
        for reference in tags:
            repository, label = split_reference(reference)
            logger.debug(
                "Pushing image %s as %s",
                reference,
                self._connection.logged_in_as or "anonymous",
            )
            try:
                chunks = self._api.push(repository, tag=label, stream=True, decode=False)
                errors = self._drain(chunks)
            except _TRANSPORT_ERRORS as exc:
                raise PushError(f"push image {reference}: {exc}") from exc
            if errors:
                raise PushError(f"push image {reference}: {'; '.join(errors)}")

    def remove(self, ids: Sequence[str]) -> None:
        for image_id in ids:
            try:
                responses = self._api.remove_image(image_id, force=True, noprune=False)
            except ImageNotFound:
                logger.debug("Image %s already removed", image_id)
                continue
            except APIError as exc:
                if exc.status_code == 404:
                    logger.debug("Image %s already removed", image_id)
                    continue
                raise RemoveError(f"remove image {image_id}: {exc}") from exc
            except (DockerException, requests.RequestException) as exc:
                raise RemoveError(f"remove image {image_id}: {exc}") from exc

            for response in responses or []:
                logger.debug("Removed image %s", response)
