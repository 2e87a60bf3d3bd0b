# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Upload progress as a one-way event stream.

Uploaders publish fractions (0.0 to 1.0) while they push bytes. A daemon
thread drains them and hands the most recent one to an observer. The
uploader never waits on the observer: publish() only enqueues, and when
several updates pile up only the latest is delivered.

Progress is for humans watching logs. Nothing in the pipeline makes decisions
based on it.
"""

import logging
import queue
import threading
from types import TracebackType
from typing import Callable, Optional

from dnprelease.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)

ProgressObserver = Callable[[float], None]

_STOP = object()


def percent_to_message(fraction: float) -> str:
    return f"Uploading... {fraction * 100:.2f}%"


class ProgressStream:
    """
    Context manager that runs the consumer thread for the duration of an upload.

    Usage:
        with ProgressStream(observer) as progress:
            uploader.add_directory(path, progress.publish)
    """

    def __init__(self, observer: ProgressObserver) -> None:
        self._observer = observer
        self._queue: "queue.SimpleQueue[object]" = queue.SimpleQueue()
        self._thread = threading.Thread(
            target=self._drain, name="dnprelease-progress", daemon=True
        )

    def publish(self, fraction: float) -> None:
        self._queue.put(min(max(fraction, 0.0), 1.0))

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            stop = item is _STOP
            # Skip ahead to the newest update.
            while not stop:
                try:
                    newer = self._queue.get_nowait()
                except queue.Empty:
                    break
                if newer is _STOP:
                    stop = True
                else:
                    item = newer
            if item is not _STOP:
                try:
                    self._observer(item)  # type: ignore[arg-type]
                except Exception:
                    _logger.warning("Progress observer raised", exc_info=True)
            if stop:
                return

    def __enter__(self) -> "ProgressStream":
        self._thread.start()
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self._queue.put(_STOP)
        self._thread.join(timeout=5.0)


class LoggingProgressObserver:
    """Logs upload progress, at most once per `step` of progress."""

    def __init__(self, logger: logging.Logger, step: float = 0.05) -> None:
        self._logger = logger
        self._step = step
        self._last_logged = -1.0

    def __call__(self, fraction: float) -> None:
        if fraction < 1.0 and fraction - self._last_logged < self._step:
            return
        self._last_logged = fraction
        self._logger.info(percent_to_message(fraction), extra={"progress": round(fraction, 4)})
