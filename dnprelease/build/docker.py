# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Thin subprocess wrapper around the docker CLI.

Only a handful of docker subcommands are ever run: `buildx build`,
`compose build`, `pull`, `tag` and `save`. Every call gets the time left on
the caller's Deadline as a hard timeout. When time runs out the child
process is killed, and CommandTimeout is raised with the elapsed time.

`save` streams the image tarball straight into an xz compressor. The output
goes to a temporary sibling of the destination and is renamed into place only
after docker exits cleanly, so a killed or failed save never leaves something
at the destination path that looks like a finished archive.
"""

import logging
import lzma
import os
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Optional, Sequence

from dnprelease.logging.logger import get_logger
from dnprelease.utils.filesystem import atomic_destination

_logger: logging.Logger = get_logger(__name__)

_STREAM_CHUNK_SIZE = 1024 * 1024

# xz preset 6 is the xz CLI default; higher presets are much slower for little gain on layers.
XZ_PRESET = 6


class Deadline:
    """A fixed point in time that several commands share."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        self._start = time.monotonic()

    def elapsed(self) -> float:
        return time.monotonic() - self._start

    def remaining(self) -> float:
        return self.timeout_seconds - self.elapsed()


class CommandTimeout(Exception):
    """A docker command was killed because the deadline passed."""

    def __init__(self, command: Sequence[str], elapsed_seconds: float) -> None:
        super().__init__(f"'{' '.join(command)}' killed after {elapsed_seconds:.1f}s")
        self.command = list(command)
        self.elapsed_seconds = elapsed_seconds


class CommandFailed(Exception):
    """A docker command exited non-zero or could not be started."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str) -> None:
        tail = stderr.strip().splitlines()[-5:]
        super().__init__(
            f"'{' '.join(command)}' failed with exit code {returncode}: {' | '.join(tail)}"
        )
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr


class DockerRunner:
    """
    Runs docker subcommands with deadlines.

    Args:
        docker_bin: Executable to invoke, "docker" unless configured otherwise.
        env: Environment for the child processes. Defaults to the current one.
    """

    def __init__(self, docker_bin: str = "docker", env: Optional[dict[str, str]] = None) -> None:
        self.docker_bin = docker_bin
        self._env = env

    def _child_env(self) -> dict[str, str]:
        env = dict(os.environ if self._env is None else self._env)
        # buildx needs BuildKit; plain compose builds benefit from it too.
        env.setdefault("DOCKER_BUILDKIT", "1")
        return env

    def run(self, args: Sequence[str], deadline: Deadline, cwd: Optional[Path] = None) -> str:
        """
        Run `docker <args>` and return its stdout.

        Raises:
            CommandTimeout: The deadline passed before the command finished.
            CommandFailed: Non-zero exit, or docker isn't installed.
        """
        command = [self.docker_bin, *args]
        remaining = deadline.remaining()
        if remaining <= 0:
            raise CommandTimeout(command, deadline.elapsed())

        _logger.debug("Running command", extra={"command": command})
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=remaining,
                cwd=str(cwd) if cwd else None,
                env=self._child_env(),
                check=False,
            )
        except subprocess.TimeoutExpired as err:
            raise CommandTimeout(command, deadline.elapsed()) from err
        except FileNotFoundError as err:
            raise CommandFailed(command, -1, f"{self.docker_bin} executable not found") from err

        if result.returncode != 0:
            raise CommandFailed(command, result.returncode, result.stderr)
        return result.stdout

    def save(self, image_tags: Sequence[str], dest: Path, deadline: Deadline) -> None:
        """
        `docker save <tags>` compressed with xz into `dest`.

        Raises:
            CommandTimeout: The deadline passed. Nothing is left at `dest`.
            CommandFailed: docker save failed. Nothing is left at `dest`.
        """
        command = [self.docker_bin, "save", *image_tags]
        remaining = deadline.remaining()
        if remaining <= 0:
            raise CommandTimeout(command, deadline.elapsed())

        _logger.debug("Saving images", extra={"command": command, "dest": str(dest)})

        killed = threading.Event()

        with atomic_destination(dest) as temp_path, tempfile.TemporaryFile() as stderr_file:
            try:
                process = subprocess.Popen(
                    command,
                    stdout=subprocess.PIPE,
                    stderr=stderr_file,
                    env=self._child_env(),
                )
            except FileNotFoundError as err:
                raise CommandFailed(command, -1, f"{self.docker_bin} executable not found") from err

            def _kill() -> None:
                killed.set()
                process.kill()

            watchdog = threading.Timer(remaining, _kill)
            watchdog.start()
            try:
                with lzma.open(temp_path, "wb", preset=XZ_PRESET) as compressed:
                    while True:
                        chunk = process.stdout.read(_STREAM_CHUNK_SIZE)  # type: ignore[union-attr]
                        if not chunk:
                            break
                        compressed.write(chunk)
                process.wait()
            finally:
                watchdog.cancel()
                if process.poll() is None:
                    process.kill()
                    process.wait()
                process.stdout.close()  # type: ignore[union-attr]

            if killed.is_set():
                raise CommandTimeout(command, deadline.elapsed())
            if process.returncode != 0:
                stderr_file.seek(0)
                stderr = stderr_file.read().decode("utf-8", errors="replace")
                raise CommandFailed(command, process.returncode, stderr)
