"""Run orchestrator: wires tag loading, version selection and the coordinator.

The Orchestrator resolves the version sequence once at startup (cache
first, registry on a miss), hands it to a :class:`PipelineCoordinator`, and
persists the tag cache at shutdown whether or not the run succeeded.
"""

from __future__ import annotations

import logging
import threading
from datetime import timedelta

import requests

from mimikry.config import MimikrySettings
from mimikry.core.coordinator import PipelineCoordinator
from mimikry.core.tag_source import RegistryTagSource, TagCacheStore
from mimikry.core.version_selector import VersionSelector
from mimikry.errors import CacheError, NetworkError
from mimikry.models.pipeline import PipelineReport
from mimikry.models.tags import TagCache
from mimikry.models.versioning import Version

logger = logging.getLogger(__name__)


class Orchestrator:
    """Resolves versions for one upstream repository and runs the pipeline.

    Parameters
    ----------
    repository:
        Upstream repository whose tags are listed (e.g. ``postgres``).
    selector:
        Version Selector holding the run's parsed constraint.
    tag_source:
        Registry tag source used on a cache miss or refresh.
    cache_store:
        Where the raw tag list is cached between runs.
    """

    def __init__(
        self,
        repository: str,
        *,
        selector: VersionSelector,
        tag_source: RegistryTagSource,
        cache_store: TagCacheStore,
    ) -> None:
        self.repository = repository
        self.selector = selector
        self.tag_source = tag_source
        self.cache_store = cache_store
        self.cache: TagCache | None = None

    @classmethod
    def from_settings(
        cls,
        settings: MimikrySettings,
        repository: str,
        selector: VersionSelector,
        *,
        session: requests.Session | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Orchestrator:
        max_age = None
        if settings.tag_cache_max_age_hours is not None:
            max_age = timedelta(hours=settings.tag_cache_max_age_hours)
        return cls(
            repository,
            selector=selector,
            tag_source=RegistryTagSource(
                session,
                url_template=settings.registry_tags_url,
                page_size=settings.registry_page_size,
                timeout=settings.request_timeout,
                cancel_event=cancel_event,
            ),
            cache_store=TagCacheStore(settings.tag_cache_path(repository), max_age=max_age),
        )

    # ------------------------------------------------------------------
    # Tags and versions
    # ------------------------------------------------------------------

    def load_tags(self, *, refresh: bool = False) -> TagCache:
        """Load the raw tag list, preferring a valid cache unless ``refresh``.

        On refresh, newly fetched tags are appended to the cached ones.
        """
        logger.info("Loading image tags")
        cached: TagCache | None = None
        try:
            cached = self.cache_store.load()
        except CacheError as exc:
            logger.debug("Failed to load tag cache: %s", exc)

        if cached is not None and cached.image != self.repository:
            logger.debug(
                "Ignoring tag cache for %s; expected %s", cached.image, self.repository
            )
            cached = None

        if cached is not None and not refresh:
            logger.debug("Using tag cache from %s", cached.modified.isoformat())
            self.cache = cached
            return cached

        logger.debug("Loading remote tags for %s", self.repository)
        try:
            fetched = self.tag_source.fetch(self.repository)
        except NetworkError as exc:
            raise NetworkError(f"load remote tags for {self.repository}") from exc

        if cached is not None:
            self.cache = cached.merge(fetched)
        else:
            self.cache = TagCache(image=self.repository, tags=fetched)
        logger.debug("Loaded %d tags", len(self.cache.tags))
        return self.cache

    def resolve_versions(self, *, refresh: bool = False) -> list[Version]:
        cache = self.load_tags(refresh=refresh)
        return self.selector.select(cache.tags)

    def save_tags(self) -> None:
        """Persist the current cache. Failures are logged, never raised."""
        if self.cache is None or not self.cache.is_valid():
            return
        logger.debug("Saving tag cache")
        try:
            self.cache_store.save(self.cache)
        except CacheError as exc:
            logger.error("Failed to save tag cache: %s", exc)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, coordinator: PipelineCoordinator, *, refresh: bool = False) -> PipelineReport:
        """Resolve versions and run ``coordinator`` over them.

        The tag cache is saved on the way out, also when the run fails or
        is cancelled.
        """
        try:
            versions = self.resolve_versions(refresh=refresh)
            logger.info(
                "Building and uploading %d images for %s", len(versions), self.repository
            )
            return coordinator.run(versions)
        finally:
            self.save_tags()
