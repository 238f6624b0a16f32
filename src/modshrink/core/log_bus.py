"""In-process bus for published log records.

Every line a ModShrinkLogger prints is also handed to the bus subscribers,
which is how ``--log-file`` captures a run. Publishing is fail-safe: a
subscriber that raises never breaks logging.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import traceback
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class LogRecord:
    level_name: str
    plain: str
    logger_name: str


Subscriber = Callable[[LogRecord], None]


class LogBus:
    def __init__(self) -> None:
        self._subs: list[Subscriber] = []
        # Minification workers log concurrently.
        self._lock = threading.Lock()

    def subscribe_all(self, cb: Subscriber) -> None:
        with self._lock:
            self._subs.append(cb)

    def unsubscribe_all(self, cb: Subscriber) -> None:
        with self._lock:
            with contextlib.suppress(ValueError):
                self._subs.remove(cb)

    def publish(self, record: LogRecord) -> None:
        with self._lock:
            targets = list(self._subs)
        for cb in targets:
            self._invoke_cb(cb, record)

    def clear(self) -> None:
        with self._lock:
            self._subs.clear()

    def _invoke_cb(self, cb: Subscriber, record: LogRecord) -> None:
        try:
            cb(record)
        except Exception:
            # Never log through the core logger here; it would publish again.
            msg = "LogBus subscriber raised; suppressed.\n" + traceback.format_exc()
            with contextlib.suppress(OSError):
                sys.stderr.write(msg)


_LOG_BUS: LogBus | None = None


def get_log_bus() -> LogBus:
    global _LOG_BUS
    if _LOG_BUS is None:
        _LOG_BUS = LogBus()
    return _LOG_BUS
