"""Decoder for the daemon's streaming JSON responses.

Build and push endpoints answer with a stream of JSON objects, one per
line. The HTTP call succeeding says nothing about the operation: a failed
build still returns 200 and reports the failure as an ``{"error": ...,
"errorDetail": {...}}`` line. Every stream therefore has to be read to the
end and scanned for such lines.
"""

from __future__ import annotations

import codecs
import json
import logging
import threading
from collections.abc import Iterable, Iterator
from enum import Enum

from pydantic import BaseModel, ConfigDict

from mimikry.errors import PipelineCancelled

logger = logging.getLogger(__name__)


class LineKind(str, Enum):
    LOG = "log"
    ERROR = "error"


class StreamLine(BaseModel):
    """One classified line of a daemon stream."""

    model_config = ConfigDict(frozen=True)

    kind: LineKind
    message: str
    raw: str = ""

    @property
    def is_error(self) -> bool:
        return self.kind == LineKind.ERROR


class StreamConsumedError(RuntimeError):
    """Raised when a daemon stream is iterated a second time."""


def iter_lines(chunks: Iterable[bytes | str]) -> Iterator[str]:
    """Re-split arbitrarily chunked stream data into complete lines."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    for chunk in chunks:
        if isinstance(chunk, bytes):
            chunk = decoder.decode(chunk)
        buffer += chunk
        *complete, buffer = buffer.split("\n")
        for line in complete:
            if line.strip():
                yield line.strip()
    buffer += decoder.decode(b"", final=True)
    if buffer.strip():
        yield buffer.strip()


def decode_line(line: str) -> StreamLine:
    """Classify ``line`` as a plain log line or a structured error."""
    try:
        payload = json.loads(line)
    except ValueError:
        return StreamLine(kind=LineKind.LOG, message=line, raw=line)

    if not isinstance(payload, dict):
        return StreamLine(kind=LineKind.LOG, message=line, raw=line)

    detail = payload.get("errorDetail")
    if payload.get("error") or detail:
        message = ""
        if isinstance(detail, dict):
            message = str(detail.get("message") or "")
        message = message or str(payload.get("error") or line)
        return StreamLine(kind=LineKind.ERROR, message=message.strip(), raw=line)

    if "stream" in payload:
        message = str(payload["stream"])
    elif "status" in payload:
        message = str(payload["status"])
        if payload.get("id"):
            message = f"{payload['id']}: {message}"
        if payload.get("progress"):
            message = f"{message} {payload['progress']}"
    else:
        message = line
    return StreamLine(kind=LineKind.LOG, message=message.strip(), raw=line)


class DaemonStream:
    """Lazy, single-pass view of a daemon response stream.

    Parameters
    ----------
    chunks:
        The raw response body chunks as returned by the docker SDK.
    cancel_event:
        Checked before each line; when set, iteration stops with
        :class:`PipelineCancelled` and the underlying response is closed.
    """

    def __init__(
        self,
        chunks: Iterable[bytes | str],
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._chunks = chunks
        self._cancel_event = cancel_event
        self._consumed = False
        self.errors: list[str] = []

    def __iter__(self) -> Iterator[StreamLine]:
        if self._consumed:
            raise StreamConsumedError("daemon stream can only be consumed once")
        self._consumed = True
        return self._iterate()

    def _iterate(self) -> Iterator[StreamLine]:
        try:
            for line in iter_lines(self._chunks):
                if self._cancel_event is not None and self._cancel_event.is_set():
                    raise PipelineCancelled("daemon stream cancelled")
                decoded = decode_line(line)
                if decoded.is_error:
                    self.errors.append(decoded.message)
                yield decoded
        finally:
            close = getattr(self._chunks, "close", None)
            if callable(close):
                close()

    def drain(self) -> list[str]:
        """Consume the whole stream, logging it, and return the error messages."""
        for line in self:
            if line.is_error:
                logger.error("%s", line.message)
            elif line.message:
                logger.debug("%s", line.message)
        return list(self.errors)
