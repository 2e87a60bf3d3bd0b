# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the upload progress stream.
"""

import logging
import threading

from dnprelease.upload.progress import LoggingProgressObserver, ProgressStream, percent_to_message


class TestProgressStream:
    def test_last_value_is_always_delivered(self) -> None:
        seen: list[float] = []
        with ProgressStream(seen.append) as progress:
            for i in range(1, 101):
                progress.publish(i / 100)

        assert seen
        assert seen[-1] == 1.0
        assert seen == sorted(seen)

    def test_values_are_clamped(self) -> None:
        seen: list[float] = []
        with ProgressStream(seen.append) as progress:
            progress.publish(1.7)

        assert seen == [1.0]

    def test_slow_observer_does_not_block_publisher(self) -> None:
        release = threading.Event()
        seen: list[float] = []

        def slow(value: float) -> None:
            release.wait(timeout=2.0)
            seen.append(value)

        with ProgressStream(slow) as progress:
            for i in range(1, 51):
                progress.publish(i / 50)
            release.set()

        assert seen[-1] == 1.0
        assert len(seen) < 50

    def test_observer_errors_are_contained(self) -> None:
        calls: list[float] = []

        def broken(value: float) -> None:
            calls.append(value)
            raise RuntimeError("observer bug")

        with ProgressStream(broken) as progress:
            progress.publish(0.5)

        assert calls == [0.5]

    def test_no_updates_no_calls(self) -> None:
        seen: list[float] = []
        with ProgressStream(seen.append):
            pass
        assert seen == []


class TestLoggingObserver:
    def test_message_format(self) -> None:
        assert percent_to_message(0.1234) == "Uploading... 12.34%"

    def test_throttles_small_steps(self, caplog) -> None:  # type: ignore[no-untyped-def]
        logger = logging.getLogger("dnprelease.test.progress")
        logger.propagate = True
        observer = LoggingProgressObserver(logger, step=0.1)

        with caplog.at_level(logging.INFO, logger="dnprelease.test.progress"):
            for value in (0.01, 0.02, 0.05, 0.2, 0.21, 1.0):
                observer(value)

        messages = [record.getMessage() for record in caplog.records]
        assert messages == [
            "Uploading... 1.00%",
            "Uploading... 20.00%",
            "Uploading... 100.00%",
        ]
