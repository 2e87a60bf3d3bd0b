# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Swarm backend: the build directory as one tar collection posted to `bzz:/`.

The tar is built in a temporary file with sorted entries, zeroed timestamps
and anonymous ownership, so identical build directories always produce
identical bytes and the same Swarm hash. The file is then streamed to the
gateway through a reader that reports how much has been sent.
"""

import logging
import re
import tarfile
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable

import requests

from dnprelease.errors import UploadError
from dnprelease.logging.logger import get_logger
from dnprelease.upload.base import CONNECT_TIMEOUT_SECONDS, ContentStore, list_tree

_logger: logging.Logger = get_logger(__name__)

_SWARM_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


def _normalized_info(tar: tarfile.TarFile, path: Path, arcname: str) -> tarfile.TarInfo:
    info = tar.gettarinfo(str(path), arcname=arcname)
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    info.mode = 0o755 if info.isdir() else 0o644
    return info


def write_deterministic_tar(directory: Path, out: BinaryIO) -> None:
    """Pack the contents of `directory` (not the directory itself) into `out`."""
    with tarfile.open(fileobj=out, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for path in list_tree(directory):
            arcname = "/".join(path.relative_to(directory).parts)
            info = _normalized_info(tar, path, arcname)
            if info.isfile():
                with open(path, "rb") as f:
                    tar.addfile(info, f)
            else:
                tar.addfile(info)


class ProgressReader:
    """
    File wrapper that reports the fraction read so far.

    Exposing __len__ lets requests send a Content-Length and stream the body
    with read() instead of loading it.
    """

    def __init__(self, fileobj: BinaryIO, size: int, on_progress: Callable[[float], None]) -> None:
        self._fileobj = fileobj
        self._size = size
        self._sent = 0
        self._on_progress = on_progress

    def __len__(self) -> int:
        return self._size

    def read(self, size: int = -1) -> bytes:
        chunk = self._fileobj.read(size)
        if chunk and self._size > 0:
            self._sent += len(chunk)
            self._on_progress(self._sent / self._size)
        return chunk


class SwarmUploader(ContentStore):
    backend = "swarm"

    def add_directory(self, directory: Path, on_progress: Callable[[float], None]) -> str:
        url = f"{self.provider}/bzz:/"

        with tempfile.TemporaryFile() as tar_file:
            write_deterministic_tar(directory, tar_file)
            size = tar_file.tell()
            tar_file.seek(0)

            _logger.info(
                "Uploading to Swarm",
                extra={"url": url, "directory": str(directory), "total_bytes": size},
            )

            try:
                response = self._session.post(
                    url,
                    data=ProgressReader(tar_file, size, on_progress),
                    headers={"Content-Type": "application/x-tar"},
                    timeout=(CONNECT_TIMEOUT_SECONDS, None),
                )
            except requests.RequestException as err:
                raise UploadError(self.backend, f"cannot reach {url}: {err}") from err

        if response.status_code >= 400:
            raise UploadError(
                self.backend, f"HTTP {response.status_code} from {url}: {response.text[:500]}"
            )

        swarm_hash = response.text.strip()
        if not _SWARM_HASH_RE.match(swarm_hash):
            raise UploadError(self.backend, f"unexpected response from gateway: {swarm_hash[:200]!r}")

        on_progress(1.0)
        return f"/bzz/{swarm_hash}"
