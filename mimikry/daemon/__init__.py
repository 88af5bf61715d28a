"""Container daemon access: connection, build engine, stream decoding.

Usage::

    from mimikry.daemon import DaemonConnection, DockerBuildEngine

    with DaemonConnection.from_env() as connection:
        engine = DockerBuildEngine(connection)
        result = engine.build(Path("mimikry/12.3"), ["johndoe/pg:12.3"])
"""

from __future__ import annotations

from mimikry.daemon.client import DaemonConnection
from mimikry.daemon.engine import BuildEngine, DockerBuildEngine, split_reference
from mimikry.daemon.stream import DaemonStream, LineKind, StreamLine, decode_line

__all__ = [
    "BuildEngine",
    "DaemonConnection",
    "DaemonStream",
    "DockerBuildEngine",
    "LineKind",
    "StreamLine",
    "decode_line",
    "split_reference",
]
