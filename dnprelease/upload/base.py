# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Contract shared by the content-addressed store backends.

A backend takes a directory, uploads the whole tree in one operation, reports
progress through a callback, and returns one opaque content address for the
root of the tree. Any backend-side failure surfaces as UploadError.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

import requests

# Connecting should be quick; the upload itself can legitimately take a long time.
CONNECT_TIMEOUT_SECONDS = 30.0


class ContentStore(ABC):
    """Base class for the IPFS and Swarm uploaders."""

    backend: str = ""

    def __init__(self, provider: str, session: Optional[requests.Session] = None) -> None:
        self.provider = provider.rstrip("/")
        self._session = session if session is not None else requests.Session()

    @abstractmethod
    def add_directory(self, directory: Path, on_progress: Callable[[float], None]) -> str:
        """
        Upload `directory` recursively and return its root content address.

        Raises:
            UploadError: The store could not be reached or rejected the upload.
        """
        ...


def list_tree(directory: Path) -> list[Path]:
    """Every file and sub-directory below `directory`, parents before children."""
    return sorted(directory.rglob("*"), key=lambda p: p.relative_to(directory).parts)
