"""Semantic version value type.

A ``Version`` keeps the exact text it was parsed from (``original``) next to
its numeric components. The text is what goes into tags and build paths;
the components are what ordering and equality use, so ``12`` and ``12.0``
compare equal while still producing different tags.
"""

from __future__ import annotations

import functools
import re

from pydantic import BaseModel, ConfigDict

_VERSION_RE = re.compile(
    r"^v?(?P<major>\d+)"
    r"(?:\.(?P<minor>\d+))?"
    r"(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<metadata>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


class InvalidVersionError(ValueError):
    """Raised when text cannot be parsed as a semantic version."""


def _prerelease_key(prerelease: str) -> tuple[tuple[int, int, str], ...]:
    # Numeric identifiers sort before alphanumeric ones and compare numerically.
    key = []
    for part in prerelease.split("."):
        if part.isdigit():
            key.append((0, int(part), ""))
        else:
            key.append((1, 0, part))
    return tuple(key)


@functools.total_ordering
class Version(BaseModel):
    """A parsed, totally ordered semantic version.

    Build metadata is kept for display but ignored by comparisons, as is
    the original text.
    """

    model_config = ConfigDict(frozen=True)

    original: str
    major: int
    minor: int = 0
    patch: int = 0
    prerelease: str = ""
    metadata: str = ""

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse ``text`` (``12``, ``12.3``, ``v1.2.3-rc.1+build``...)."""
        match = _VERSION_RE.match(text.strip())
        if match is None:
            raise InvalidVersionError(f"invalid semantic version: {text!r}")
        return cls(
            original=text.strip(),
            major=int(match["major"]),
            minor=int(match["minor"] or 0),
            patch=int(match["patch"] or 0),
            prerelease=match["prerelease"] or "",
            metadata=match["metadata"] or "",
        )

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    @property
    def release(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def _sort_key(self) -> tuple:
        # A release sorts after every pre-release of the same numbers.
        if self.prerelease:
            return (self.release, 0, _prerelease_key(self.prerelease))
        return (self.release, 1, ())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._sort_key() == other._sort_key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __hash__(self) -> int:
        return hash(self._sort_key())

    def __str__(self) -> str:
        return self.original

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def canonical(self) -> str:
        """Normalized ``major.minor.patch[-pre]`` form."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        return text
