"""Tag list models: the persisted cache and the registry's wire format."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TagCache(BaseModel):
    """Snapshot of an upstream repository's raw tag list.

    Tags are stored pre-filter and pre-parse, exactly as the registry
    returned them. A cache is only usable when ``image`` and ``tags`` are
    both non-empty (see :meth:`is_valid`).
    """

    model_config = ConfigDict(frozen=True)

    image: str
    modified: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    tags: list[str] = []

    def is_valid(self) -> bool:
        return bool(self.image) and bool(self.tags)

    def merge(self, tags: list[str]) -> TagCache:
        """Return a copy with unseen ``tags`` appended and ``modified`` bumped.

        Existing order is preserved; duplicates are dropped.
        """
        known = set(self.tags)
        added = []
        for tag in tags:
            if tag not in known:
                known.add(tag)
                added.append(tag)
        return self.model_copy(
            update={
                "tags": [*self.tags, *added],
                "modified": datetime.now(timezone.utc),
            }
        )


class RegistryTag(BaseModel):
    """One entry of a registry tag listing page. Other fields are ignored."""

    name: str


class RegistryTagsPage(BaseModel):
    """One page of the paginated registry tag listing."""

    next: str = ""
    results: list[RegistryTag] = []

    @field_validator("next", mode="before")
    @classmethod
    def _null_next_is_last_page(cls, value: object) -> object:
        return "" if value is None else value
