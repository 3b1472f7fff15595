"""Logging set-up with an optional periodic flusher."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

KLOG_FLUSH_INTERVAL = 5.0
"""Default number of seconds between log flushes."""

_log = logging.getLogger("localpv")


@dataclass
class _LoggingState:
    default_flush_interval: float = KLOG_FLUSH_INTERVAL
    kill_switch: threading.Event = field(default_factory=threading.Event)
    flusher: threading.Thread | None = None


_state = _LoggingState()


class KlogWriter:
    """A file-like sink that forwards everything written to the package logger."""

    def write(self, data) -> int:
        text = data.decode("utf-8", "replace") if isinstance(data, (bytes, bytearray)) else str(data)
        _log.info(text)
        return len(data)

    def flush(self) -> None:
        _flush_all()


def _flush_all() -> None:
    for logger in (logging.getLogger(), _log):
        for handler in logger.handlers:
            handler.flush()


def set_default_flush_interval(freq: float) -> None:
    """Set the flush interval that is considered the default."""
    _state.default_flush_interval = freq


def _flush_loop(freq: float, stop: threading.Event) -> None:
    while not stop.wait(freq):
        _flush_all()


def init_logging(flush_frequency: float | None = None) -> threading.Thread | None:
    """Configure logging; start a periodic flusher if the frequency differs from the default.

    Returns the flusher thread, or None when none was started.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")

    freq = KLOG_FLUSH_INTERVAL if flush_frequency is None else flush_frequency
    if freq == _state.default_flush_interval:
        return None
    if freq <= 0:
        raise ValueError("flush frequency must be positive")
    _state.kill_switch = threading.Event()
    _state.flusher = threading.Thread(target=_flush_loop, args=(freq, _state.kill_switch), daemon=True)
    _state.flusher.start()
    return _state.flusher


def finish_logging() -> None:
    """Stop the periodic flusher and flush pending log output."""
    _state.kill_switch.set()
    if _state.flusher is not None:
        _state.flusher.join()
        _state.flusher = None
    _flush_all()