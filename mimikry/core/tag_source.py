"""Tag Source: upstream tag listing from the registry or a local cache.

The registry listing is paginated: every page carries a batch of tag names
and the URL of the next page (empty or null on the last one). All pages are
concatenated before returning; no filtering happens here.

The cache is a JSON file ``{image, modified, tags}``. A missing, empty,
undecodable or incomplete cache raises a :class:`CacheError` subclass, which
callers treat as a cache miss, never as a fatal error.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import requests
from pydantic import ValidationError

from mimikry.errors import (
    CacheError,
    CacheNotFoundError,
    DecodeError,
    InvalidCacheError,
    NetworkError,
    PipelineCancelled,
)
from mimikry.models.tags import RegistryTagsPage, TagCache

logger = logging.getLogger(__name__)

DEFAULT_TAGS_URL = (
    "https://registry.hub.docker.com/v2/repositories/"
    "{namespace}/{repository}/tags?page=1&page_size={page_size}"
)


def split_repository(repository: str) -> tuple[str, str]:
    """Split ``owner/name`` into its parts; bare names live in ``library``."""
    namespace, _, name = repository.rpartition("/")
    return namespace or "library", name


class RegistryTagSource:
    """Fetches the complete tag list of a repository from a registry.

    Parameters
    ----------
    session:
        HTTP session used for every page. A new ``requests.Session`` is
        created if not provided.
    url_template:
        First-page URL with ``{namespace}``, ``{repository}`` and
        ``{page_size}`` placeholders.
    page_size:
        Number of tags requested per page.
    timeout:
        Per-request timeout in seconds.
    cancel_event:
        Checked between pages; when set, the fetch stops with
        :class:`PipelineCancelled`.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        url_template: str = DEFAULT_TAGS_URL,
        page_size: int = 100,
        timeout: float = 30.0,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._session = session or requests.Session()
        self._url_template = url_template
        self._page_size = page_size
        self._timeout = timeout
        self._cancel_event = cancel_event

    def first_page_url(self, repository: str) -> str:
        namespace, name = split_repository(repository)
        return self._url_template.format(
            namespace=namespace, repository=name, page_size=self._page_size
        )

    def fetch(self, repository: str) -> list[str]:
        """Return every raw tag of ``repository``, in registry order."""
        tags: list[str] = []
        visited: set[str] = set()
        url = self.first_page_url(repository)

        while url:
            if self._cancel_event is not None and self._cancel_event.is_set():
                raise PipelineCancelled(f"fetch tags for {repository}: cancelled")
            if url in visited:
                raise DecodeError(f"fetch tags for {repository}: pagination loops back to {url}")
            visited.add(url)

            page = self._get_page(url)
            tags.extend(result.name for result in page.results)
            url = page.next

        logger.debug("Fetched %d tags for %s in %d pages", len(tags), repository, len(visited))
        return tags

    def _get_page(self, url: str) -> RegistryTagsPage:
        logger.debug("Requesting tag page %s", url)
        try:
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NetworkError(f"request tag page {url}: {exc}") from exc

        try:
            return RegistryTagsPage.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise DecodeError(f"decode tag page {url}: {exc}") from exc


class TagCacheStore:
    """Loads and saves a :class:`TagCache` at a fixed path.

    Parameters
    ----------
    path:
        Location of the JSON cache file.
    max_age:
        Caches older than this are reported as invalid. ``None`` disables
        expiry.
    """

    def __init__(self, path: Path, max_age: timedelta | None = None) -> None:
        self.path = Path(path)
        self.max_age = max_age

    def load(self) -> TagCache:
        """Read the cache; raises :class:`CacheError` on any kind of miss."""
        try:
            stat = self.path.stat()
        except FileNotFoundError as exc:
            raise CacheNotFoundError(f"no tag cache at {self.path}") from exc
        except OSError as exc:
            raise InvalidCacheError(f"stat tag cache {self.path}: {exc}") from exc

        if stat.st_size == 0:
            raise CacheNotFoundError(f"tag cache {self.path} is empty")

        try:
            cache = TagCache.model_validate_json(self.path.read_bytes())
        except OSError as exc:
            raise InvalidCacheError(f"read tag cache {self.path}: {exc}") from exc
        except ValidationError as exc:
            raise InvalidCacheError(f"decode tag cache {self.path}: {exc}") from exc

        if not cache.is_valid():
            raise InvalidCacheError(f"tag cache {self.path} has no image name or no tags")

        file_time = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        if "modified" not in cache.model_fields_set:
            modified = file_time
        else:
            modified = cache.modified
            if modified.tzinfo is None:
                modified = modified.replace(tzinfo=timezone.utc)
            # The timestamp may move forward to the file's mtime, never backward.
            if file_time > modified:
                modified = file_time
        cache = cache.model_copy(update={"modified": modified})

        if self.max_age is not None and datetime.now(timezone.utc) - modified > self.max_age:
            raise InvalidCacheError(
                f"tag cache {self.path} expired (modified {modified.isoformat()})"
            )
        return cache

    def save(self, cache: TagCache) -> None:
        """Write ``cache`` to :attr:`path`, creating parent directories."""
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(cache.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
            # Keep mtime in step with the snapshot so max_age still applies.
            stamp = cache.modified.timestamp()
            os.utime(self.path, (stamp, stamp))
        except OSError as exc:
            raise CacheError(f"save tag cache {self.path}: {exc}") from exc
        logger.debug("Saved %d tags to %s", len(cache.tags), self.path)
