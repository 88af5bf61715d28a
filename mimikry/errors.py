"""Error taxonomy for mimikry.

Every layer wraps the error it receives with the name of the operation it
was performing (``raise BuildError("build image acme/postgres:12") from exc``), so the
top-level reporter can show the full causal chain with
:func:`format_error_chain`.

Fatal:
- ConfigurationError: bad constraint expression, bad template set, missing
  credentials. Raised before any daemon interaction where possible.
- NetworkError / DecodeError: registry fetch failures.
- DaemonError: build, tag, push, remove failures reported by the daemon,
  including error lines embedded in an otherwise successful stream.

Non-fatal:
- CacheError: missing or corrupt tag cache; degrades to a network fetch.
- CleanupError: stale image or build directory could not be removed.

PipelineCancelled is raised when the cancellation signal is observed; it is
not a failure.
"""

from __future__ import annotations


class MimikryError(RuntimeError):
    """Base class for all mimikry errors."""


class ConfigurationError(MimikryError):
    """Invalid user-supplied configuration."""


class ConstraintParseError(ConfigurationError):
    """Raised when a version constraint expression is malformed."""


class TemplateRenderError(ConfigurationError):
    """Raised when a template cannot be loaded, rendered, or written."""


class NetworkError(MimikryError):
    """Raised when the registry cannot be reached or answers with an error."""


class DecodeError(MimikryError):
    """Raised when a registry response cannot be decoded."""


class CacheError(MimikryError):
    """Base class for tag cache problems. Always treated as a cache miss."""


class CacheNotFoundError(CacheError):
    """The tag cache file is missing or empty."""


class InvalidCacheError(CacheError):
    """The tag cache file exists but is not a usable cache."""


class DaemonError(MimikryError):
    """Base class for container daemon failures."""


class BuildError(DaemonError):
    """Raised when an image build fails."""


class TagError(DaemonError):
    """Raised when an image cannot be tagged."""


class PushError(DaemonError):
    """Raised when pushing a tag fails."""


class RemoveError(DaemonError):
    """Raised when an image cannot be removed."""


class CleanupError(MimikryError):
    """Raised when hygiene cleanup (stale images, build dirs) fails."""


class PipelineCancelled(MimikryError):
    """Raised when the run stops because cancellation was requested."""


def format_error_chain(exc: BaseException) -> str:
    """Render ``exc`` and its ``__cause__`` chain as ``outer: inner: root``.

    Messages already containing the text of their cause are not repeated.
    """
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = str(current) or type(current).__name__
        if not parts or message not in parts[-1]:
            parts.append(message)
        current = current.__cause__
    return ": ".join(parts)
