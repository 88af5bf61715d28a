"""Version Selector: raw tags in, ascending versions out.

1. The constraint is parsed once; a malformed expression fails the run.
2. Tags are trimmed and anything not matching the tag pattern is skipped
   silently (``latest``, ``alpine``, ``12-bullseye``, ...).
3. Tags that match the pattern but still fail to parse are skipped with a
   warning.
4. Versions failing the constraint are skipped.
5. Survivors are stable-sorted ascending. Nothing is deduplicated: ``12``
   and ``12.0`` compare equal and both stay if both were listed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from mimikry.core.constraint import Constraint
from mimikry.models.config import SelectorOptions
from mimikry.models.versioning import InvalidVersionError, Version

logger = logging.getLogger(__name__)


class VersionSelector:
    """Filters and orders raw tags against a constraint.

    Parameters
    ----------
    constraint:
        A parsed :class:`Constraint` or its textual expression.
    options:
        Selector policy (tag shape pattern).
    """

    def __init__(
        self,
        constraint: Constraint | str | None = None,
        options: SelectorOptions | None = None,
    ) -> None:
        if not isinstance(constraint, Constraint):
            constraint = Constraint.parse(constraint)
        self.constraint = constraint
        self.options = options or SelectorOptions()
        self._tag_pattern = re.compile(self.options.tag_pattern)

    def accepts_shape(self, tag: str) -> bool:
        """Whether ``tag`` looks like a plain numeric version."""
        return self._tag_pattern.match(tag) is not None

    def select(self, raw_tags: Iterable[str]) -> list[Version]:
        """Return the matching versions of ``raw_tags`` in ascending order."""
        versions: list[Version] = []
        for raw in raw_tags:
            tag = raw.strip()
            if not self.accepts_shape(tag):
                logger.debug("Skipping tag %s; not a plain numeric version", tag)
                continue

            try:
                version = Version.parse(tag)
            except InvalidVersionError as exc:
                logger.warning("Failed to parse tag %s: %s", tag, exc)
                continue

            if not self.constraint.check(version):
                logger.debug("Skipping version %s; does not match constraint %s", tag, self.constraint)
                continue

            logger.debug("Adding version %s", tag)
            versions.append(version)

        versions.sort()
        logger.debug("%d versions after sorting and filtering", len(versions))
        return versions


def select_versions(
    raw_tags: Iterable[str],
    constraint_expression: str | None,
    options: SelectorOptions | None = None,
) -> list[Version]:
    """Parse ``constraint_expression`` and select matching versions from ``raw_tags``."""
    return VersionSelector(constraint_expression, options).select(raw_tags)
