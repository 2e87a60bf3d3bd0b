# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Hashing utilities for dnprelease.

Archives are digested after every build so logs and build results can show
whether two runs produced byte-identical output.
"""

import hashlib
from pathlib import Path

HASH_BUFFER_SIZE = 1024 * 1024  # image archives are large, read 1 MiB at a time


def compute_sha256(file_path: Path) -> str:
    """
    Compute the SHA256 hex digest of a file, reading it in chunks.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        OSError: If the file can't be read.
    """
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(HASH_BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()
