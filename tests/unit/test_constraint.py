"""Unit tests for version constraint parsing and evaluation."""

from __future__ import annotations

import pytest

from mimikry.core.constraint import Constraint
from mimikry.errors import ConfigurationError, ConstraintParseError
from mimikry.models.versioning import Version


def _matches(expression: str, *texts: str) -> list[str]:
    constraint = Constraint.parse(expression)
    return [t for t in texts if constraint.check(Version.parse(t))]


class TestParsing:
    @pytest.mark.parametrize("expression", ["", "   ", None, "*"])
    def test_empty_or_star_matches_everything(self, expression):
        constraint = Constraint.parse(expression)
        assert constraint.check(Version.parse("0.1"))
        assert constraint.check(Version.parse("16.2"))

    def test_empty_is_matches_all(self):
        assert Constraint.parse("").matches_all
        assert not Constraint.parse(">= 1").matches_all

    @pytest.mark.parametrize(
        "expression",
        [">= twelve", ">>= 12", "12 ||", "|| 12", ">= 12,", "12.0.0.0", "latest"],
    )
    def test_malformed_raises(self, expression):
        with pytest.raises(ConstraintParseError):
            Constraint.parse(expression)

    def test_parse_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            Constraint.parse("nope")

    def test_expression_kept_for_display(self):
        constraint = Constraint.parse(">= 12.0, < 13.0")
        assert constraint.expression == ">= 12.0, < 13.0"
        assert str(constraint) == ">= 12.0, < 13.0"
        assert str(Constraint.parse("")) == "*"

    def test_callable(self):
        assert Constraint.parse("> 1")(Version.parse("2"))


class TestComparisons:
    ALL = ("9.6", "10.0", "10.1", "11.3", "12", "12.0", "12.3", "12.5", "13.0", "14.1")

    def test_and_range(self):
        assert _matches(">= 12.0, < 13.0", *self.ALL) == ["12", "12.0", "12.3", "12.5"]

    def test_whitespace_separated_and(self):
        assert _matches(">=12.0 <13.0", *self.ALL) == ["12", "12.0", "12.3", "12.5"]

    def test_or(self):
        assert _matches("< 10 || >= 14", *self.ALL) == ["9.6", "14.1"]

    def test_exact(self):
        assert _matches("= 12.3", *self.ALL) == ["12.3"]
        assert _matches("12.3.0", *self.ALL) == ["12.3"]

    def test_not_equal(self):
        assert "12.3" not in _matches("!= 12.3", *self.ALL)
        assert "12.5" in _matches("!= 12.3", *self.ALL)

    def test_bare_major_is_a_range(self):
        assert _matches("12", *self.ALL) == ["12", "12.0", "12.3", "12.5"]
        assert _matches("12.x", *self.ALL) == ["12", "12.0", "12.3", "12.5"]

    def test_greater_than_partial_skips_whole_range(self):
        assert _matches("> 12", *self.ALL) == ["13.0", "14.1"]

    def test_less_equal_partial_includes_whole_range(self):
        assert _matches("<= 10", *self.ALL) == ["9.6", "10.0", "10.1"]

    def test_aliases(self):
        assert _matches("=> 13", *self.ALL) == ["13.0", "14.1"]
        assert _matches("=< 9.6", *self.ALL) == ["9.6"]

    def test_hyphen_range(self):
        assert _matches("10.1 - 11.3", *self.ALL) == ["10.1", "11.3"]


class TestRanges:
    def test_tilde(self):
        assert _matches("~12.3", "12.2", "12.3", "12.3.9", "12.4") == ["12.3", "12.3.9"]
        assert _matches("~12", "11.9", "12.0", "12.9", "13.0") == ["12.0", "12.9"]
        assert _matches("~>1.2.3", "1.2.2", "1.2.3", "1.2.8", "1.3.0") == ["1.2.3", "1.2.8"]

    def test_caret(self):
        assert _matches("^12.3", "12.2", "12.3", "12.9", "13.0") == ["12.3", "12.9"]
        assert _matches("^0.2.3", "0.2.2", "0.2.3", "0.2.9", "0.3.0") == ["0.2.3", "0.2.9"]
        assert _matches("^0.0.3", "0.0.3", "0.0.4") == ["0.0.3"]


class TestPrereleases:
    def test_excluded_by_default(self):
        assert _matches(">= 15", "15.0", "16.0-rc1", "16.0") == ["15.0", "16.0"]

    def test_included_when_constraint_has_prerelease(self):
        assert _matches(">= 16.0-beta1", "16.0-rc1", "16.0") == ["16.0-rc1", "16.0"]
