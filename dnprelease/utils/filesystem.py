# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Safe filesystem operations for dnprelease.

Everything that ends up in a build directory is part of the uploaded artifact,
so a half-written file there is worse than no file at all: the next run would
preserve it as if it were complete. All writers in this package go through the
helpers below, which write to a hidden temporary sibling and rename into place.
Rename on the same filesystem is atomic on POSIX.
"""

import os
import shutil
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

TEMP_PREFIX = ".dnprelease_tmp_"


def atomic_write(target_path: Path, content: str, encoding: str = "utf-8") -> None:
    """
    Write text to a file atomically.

    Args:
        target_path: Where the final file should end up.
        content: The string content to write.
        encoding: Text encoding to use.

    Raises:
        OSError: If the write or rename fails. The target is left untouched.
    """
    with atomic_destination(target_path) as temp_path:
        temp_path.write_text(content, encoding=encoding)


def atomic_copy(source_path: Path, target_path: Path) -> None:
    """Copy a file so the target only ever appears complete."""
    with atomic_destination(target_path) as temp_path:
        shutil.copyfile(source_path, temp_path)


@contextmanager
def atomic_destination(target_path: Path) -> Iterator[Path]:
    """
    Yield a temporary path next to `target_path` and rename it on success.

    The caller writes the file however it likes (plain write, streamed
    subprocess output, compressor). If the block raises, including
    KeyboardInterrupt or a killed build, the temporary file is removed and
    the target is never touched.

    The renamed file keeps the permission bits of the file it replaces, or
    gets the usual umask-derived mode when the target is new.
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(
        dir=str(target_path.parent),
        prefix=TEMP_PREFIX,
        suffix=".tmp",
    )
    os.close(fd)
    temp_path = Path(temp_name)

    try:
        yield temp_path
        os.chmod(temp_path, _target_mode(target_path))
        temp_path.replace(target_path)
    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


def _target_mode(target_path: Path) -> int:
    # mkstemp always creates 0600
    try:
        return stat.S_IMODE(target_path.stat().st_mode)
    except FileNotFoundError:
        return 0o666 & ~_current_umask()


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def remove_path(path: Path) -> None:
    """Delete a file, symlink or directory tree."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def ensure_directory(path: Path) -> Path:
    """Create a directory (and parents) if it doesn't exist. Returns the path for chaining."""
    path.mkdir(parents=True, exist_ok=True)
    return path
