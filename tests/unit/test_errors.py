"""Tests for the error hierarchy and chain formatting."""

from __future__ import annotations

from mimikry.errors import (
    BuildError,
    CacheError,
    CleanupError,
    ConfigurationError,
    ConstraintParseError,
    DaemonError,
    MimikryError,
    PushError,
    TemplateRenderError,
    format_error_chain,
)


def _chain() -> BuildError:
    try:
        try:
            raise OSError("no space left on device")
        except OSError as exc:
            raise BuildError("build image acme/postgres:12") from exc
    except BuildError as exc:
        try:
            raise BuildError("build version 12") from exc
        except BuildError as outer:
            return outer


class TestHierarchy:
    def test_everything_is_a_mimikry_error(self):
        for cls in (ConfigurationError, CacheError, DaemonError, CleanupError):
            assert issubclass(cls, MimikryError)
        assert issubclass(MimikryError, RuntimeError)

    def test_configuration_family(self):
        assert issubclass(ConstraintParseError, ConfigurationError)
        assert issubclass(TemplateRenderError, ConfigurationError)

    def test_daemon_family(self):
        assert issubclass(BuildError, DaemonError)
        assert issubclass(PushError, DaemonError)


class TestFormatErrorChain:
    def test_joins_causes(self):
        assert format_error_chain(_chain()) == (
            "build version 12: build image acme/postgres:12: no space left on device"
        )

    def test_skips_repeated_message(self):
        try:
            try:
                raise ValueError("boom")
            except ValueError as exc:
                raise PushError("push image x: boom") from exc
        except PushError as exc:
            assert format_error_chain(exc) == "push image x: boom"

    def test_empty_message_uses_type(self):
        assert format_error_chain(CleanupError()) == "CleanupError"
