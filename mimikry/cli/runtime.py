"""Process plumbing shared by the CLI commands: logging and signals."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable

from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def configure_logging(*, debug: bool = False, level: str = "INFO") -> None:
    """Initialise the root logger once per process."""
    logging.basicConfig(
        level=logging.DEBUG if debug else level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=debug, rich_tracebacks=debug)],
        force=True,
    )
    # urllib3 and docker are chatty at DEBUG.
    for name in ("urllib3", "docker"):
        logging.getLogger(name).setLevel(logging.INFO if debug else logging.WARNING)


def install_signal_handlers(cancel_event: threading.Event) -> Callable[[], None]:
    """Set ``cancel_event`` on SIGINT/SIGTERM.

    Returns a callable that restores the previous handlers. Outside the main
    thread nothing is installed and the callable does nothing.
    """
    if threading.current_thread() is not threading.main_thread():
        return lambda: None

    def _handle(signum: int, _frame: object) -> None:
        if cancel_event.is_set():
            return
        logger.warning("Received %s, stopping after the current step", signal.Signals(signum).name)
        cancel_event.set()

    previous = {
        signum: signal.signal(signum, _handle)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }

    def _restore() -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    return _restore
