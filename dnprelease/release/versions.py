# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Choosing the version to release.

The next version normally comes from a remote registry lookup (done by the
caller, outside this package). A package that has never been published has
no repository yet; in that case, and only that case, the version in the local
manifest is used. The outcome is reported explicitly so callers and logs can
tell the two paths apart. Any other lookup failure propagates.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from dnprelease.descriptors.manifest import read_manifest
from dnprelease.errors import RepositoryNotFoundError
from dnprelease.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)


class VersionOutcome(str, Enum):
    REMOTE = "remote"
    LOCAL_FALLBACK_NO_REPOSITORY = "local_fallback_no_repository"


@dataclass(frozen=True)
class VersionResolution:
    version: str
    outcome: VersionOutcome


def get_current_local_version(directory: Path) -> str:
    return str(read_manifest(directory)["version"])


def resolve_release_version(
    lookup: Callable[[], str],
    directory: Path,
) -> VersionResolution:
    """
    Ask `lookup` for the next version, falling back to the manifest version
    only when the registry reports that the repository doesn't exist.
    """
    try:
        version = lookup()
    except RepositoryNotFoundError as err:
        version = get_current_local_version(directory)
        _logger.info(
            "No repository in registry, using local version",
            extra={"version": version, "reason": str(err)},
        )
        return VersionResolution(version, VersionOutcome.LOCAL_FALLBACK_NO_REPOSITORY)

    return VersionResolution(version, VersionOutcome.REMOTE)
