"""Version constraint expressions.

Supported syntax (a subset of the Masterminds semver constraint language)::

    ">= 12.3"            comparison
    ">= 12.0, < 13.0"    comparisons separated by commas or spaces are ANDed
    "^12 || ~11.4"       alternatives separated by ``||`` are ORed
    "12", "12.x", "12.*" bare versions with missing/wildcard parts are ranges
    "10.1 - 11.3"        hyphen range, same as ">= 10.1, <= 11.3"
    "~12.3", "^12"       tilde and caret ranges

An empty expression (or ``*``) matches every version. Pre-release versions
only satisfy comparisons whose own version carries a pre-release.
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict

from mimikry.errors import ConstraintParseError
from mimikry.models.versioning import Version

_OPERATOR = r"(?:!=|>=|=>|<=|=<|~>|\^|~|=|>|<)"
_PART = r"(?:\d+|[xX*])"
_IDENTS = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"
_VERSION = rf"v?{_PART}(?:\.{_PART})?(?:\.{_PART})?(?:-{_IDENTS})?(?:\+{_IDENTS})?"
_COMPARISON = rf"{_OPERATOR}?\s*{_VERSION}"

_COMPARISON_RE = re.compile(rf"(?P<op>{_OPERATOR})?\s*(?P<version>{_VERSION})")
_GROUP_RE = re.compile(rf"\s*{_COMPARISON}(?:(?:\s*,\s*|\s+){_COMPARISON})*\s*")
_HYPHEN_RE = re.compile(rf"(?P<low>{_VERSION})\s+-\s+(?P<high>{_VERSION})")
_VERSION_PARTS_RE = re.compile(
    rf"^v?(?P<major>{_PART})(?:\.(?P<minor>{_PART}))?(?:\.(?P<patch>{_PART}))?"
    rf"(?:-(?P<prerelease>{_IDENTS}))?(?:\+{_IDENTS})?$"
)

_OPERATOR_ALIASES = {"": "=", "=>": ">=", "=<": "<=", "~>": "~"}


class Precision(str, Enum):
    """Which version part a constraint left unspecified (or wildcarded)."""

    EXACT = "exact"
    PATCH = "patch"  # "12.3"  / "12.3.x"
    MINOR = "minor"  # "12"    / "12.x"
    ANY = "any"      # "*"     / "x"


def _is_wildcard(part: str | None) -> bool:
    return part is None or part in ("x", "X", "*")


def _bound(major: int, minor: int, patch: int) -> Version:
    return Version(original=f"{major}.{minor}.{patch}", major=major, minor=minor, patch=patch)


class Comparison(BaseModel):
    """A single ``<operator> <version>`` term."""

    model_config = ConfigDict(frozen=True)

    operator: str
    version: Version
    precision: Precision = Precision.EXACT

    @classmethod
    def parse(cls, operator: str | None, text: str) -> Comparison:
        match = _VERSION_PARTS_RE.match(text)
        if match is None:
            raise ConstraintParseError(f"invalid version in constraint: {text!r}")

        major, minor, patch = match["major"], match["minor"], match["patch"]
        if _is_wildcard(major):
            precision = Precision.ANY
        elif _is_wildcard(minor):
            precision = Precision.MINOR
        elif _is_wildcard(patch):
            precision = Precision.PATCH
        else:
            precision = Precision.EXACT

        # Everything after the first wildcard is zeroed.
        numbers = []
        for part in (major, minor, patch):
            if _is_wildcard(part):
                break
            numbers.append(int(part))
        numbers += [0] * (3 - len(numbers))

        version = Version(
            original=text,
            major=numbers[0],
            minor=numbers[1],
            patch=numbers[2],
            prerelease=match["prerelease"] or "",
        )
        op = operator or ""
        return cls(operator=_OPERATOR_ALIASES.get(op, op), version=version, precision=precision)

    # ------------------------------------------------------------------
    # Range helpers
    # ------------------------------------------------------------------

    def _next_at_precision(self) -> Version:
        """Exclusive upper bound of a partial version, also the tilde bound."""
        v = self.version
        if self.precision == Precision.MINOR:
            return _bound(v.major + 1, 0, 0)
        return _bound(v.major, v.minor + 1, 0)

    def _caret_upper(self) -> Version:
        v = self.version
        if v.major > 0 or self.precision == Precision.MINOR:
            return _bound(v.major + 1, 0, 0)
        if v.minor > 0 or self.precision == Precision.PATCH:
            return _bound(0, v.minor + 1, 0)
        return _bound(0, 0, v.patch + 1)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def check(self, candidate: Version) -> bool:
        if candidate.prerelease and not self.version.prerelease:
            return False

        op = self.operator
        lower = self.version
        partial = self.precision in (Precision.MINOR, Precision.PATCH)

        if self.precision == Precision.ANY:
            return op not in ("!=", "<", ">")

        if op == "=":
            if partial:
                return lower <= candidate < self._next_at_precision()
            return candidate == lower
        if op == "!=":
            if partial:
                return not lower <= candidate < self._next_at_precision()
            return candidate != lower
        if op == ">":
            if partial:
                return candidate >= self._next_at_precision()
            return candidate > lower
        if op == ">=":
            return candidate >= lower
        if op == "<":
            return candidate < lower
        if op == "<=":
            if partial:
                return candidate < self._next_at_precision()
            return candidate <= lower
        if op == "~":
            return lower <= candidate < self._next_at_precision()
        if op == "^":
            return lower <= candidate < self._caret_upper()
        raise ConstraintParseError(f"unsupported operator {op!r}")

    def __str__(self) -> str:
        return f"{self.operator}{self.version.original}"


class Constraint:
    """A parsed, immutable predicate over :class:`Version`.

    Parameters
    ----------
    expression:
        The source text, kept for display.
    alternatives:
        OR-ed groups of AND-ed comparisons. An empty list matches everything.
    """

    def __init__(self, expression: str, alternatives: list[list[Comparison]]) -> None:
        self._expression = expression
        self._alternatives = [list(group) for group in alternatives]

    @classmethod
    def parse(cls, expression: str | None) -> Constraint:
        """Parse ``expression``; raises :class:`ConstraintParseError` if malformed."""
        text = (expression or "").strip()
        if not text:
            return cls("", [])

        alternatives: list[list[Comparison]] = []
        for raw_group in text.split("||"):
            group = _HYPHEN_RE.sub(r">= \g<low>, <= \g<high>", raw_group.strip())
            if not group or _GROUP_RE.fullmatch(group) is None:
                raise ConstraintParseError(
                    f"malformed version constraint {expression!r} near {raw_group.strip()!r}"
                )
            alternatives.append(
                [
                    Comparison.parse(match["op"], match["version"])
                    for match in _COMPARISON_RE.finditer(group)
                ]
            )
        return cls(text, alternatives)

    @property
    def expression(self) -> str:
        return self._expression

    @property
    def matches_all(self) -> bool:
        return not self._alternatives

    def check(self, version: Version) -> bool:
        """Return True when ``version`` satisfies any alternative."""
        if not self._alternatives:
            return True
        return any(
            all(comparison.check(version) for comparison in group)
            for group in self._alternatives
        )

    __call__ = check

    def __str__(self) -> str:
        return self._expression or "*"

    def __repr__(self) -> str:
        return f"Constraint({self._expression!r})"
