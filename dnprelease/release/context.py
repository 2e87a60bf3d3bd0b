# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Shared result context that flows through the pipeline stages."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dnprelease.build.orchestrator import ImageArchive


@dataclass(frozen=True)
class PipelineContext:
    """
    Stages never mutate this; they return an updated copy via dataclasses.replace.

    release_hash is what the upload stage got back from the store.
    release_multi_hash is the same value published under the name downstream
    consumers (publish transactions, release notes) read. Both stay None when
    the upload is skipped.
    """

    build_dir: Path
    archives: tuple[ImageArchive, ...] = ()
    release_hash: Optional[str] = None
    release_multi_hash: Optional[str] = None
