# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Build directory manager.

The build directory is what gets uploaded, byte for byte. So after this stage
it holds exactly:

    build_<version>/
    ├─ <name>_<version>_<arch>.txz   (only those left over from a previous run)
    ├─ docker-compose.yml            (release variant)
    ├─ dappnode_package.json         (finalized manifest)
    ├─ avatar.png
    └─ optional assets (setup wizard, disclaimer, ...)

Anything else found in the directory is deleted. Archives whose names match
the current {name, version, architecture} set are kept, which is how a run
that timed out on arm64 resumes without rebuilding amd64.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from dnprelease.descriptors.assets import get_asset_path
from dnprelease.descriptors.compose import write_compose
from dnprelease.descriptors.manifest import write_manifest
from dnprelease.descriptors.validator import validate_manifest
from dnprelease.logging.logger import get_logger
from dnprelease.params import AVATAR, OPTIONAL_RELEASE_FILES
from dnprelease.release.normalizer import NormalizedRelease
from dnprelease.utils.filesystem import atomic_copy, ensure_directory, remove_path

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class BuildDirInput:
    build_dir: Path
    source_dir: Path
    release: NormalizedRelease


@dataclass(frozen=True)
class BuildDirResult:
    build_dir: Path
    expected_archives: tuple[str, ...]
    preserved: tuple[str, ...]
    removed: tuple[str, ...]
    copied_assets: tuple[str, ...]


def default_build_dir(directory: Path, version: str) -> Path:
    """build_<version> inside the package directory."""
    return directory / f"build_{version}"


def clean_build_dir(build_dir: Path, keep: frozenset[str]) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """
    Create `build_dir` if needed and delete every entry not named in `keep`.

    Returns (preserved, removed) entry names, both sorted.
    """
    ensure_directory(build_dir)
    preserved: list[str] = []
    removed: list[str] = []

    for entry in sorted(build_dir.iterdir()):
        if entry.name in keep and entry.is_file():
            preserved.append(entry.name)
            continue
        remove_path(entry)
        removed.append(entry.name)

    return tuple(preserved), tuple(removed)


def prepare_build_dir(inp: BuildDirInput) -> BuildDirResult:
    """
    Clean the build directory and copy in the release files.

    Raises:
        ValidationError: The finalized manifest fails prerelease validation.
        OSError: Filesystem failures while cleaning or copying.
    """
    release = inp.release
    expected = tuple(release.target.archive_names(release.name, release.version).values())

    preserved, removed = clean_build_dir(inp.build_dir, frozenset(expected))
    _logger.info(
        "Build directory cleaned",
        extra={
            "build_dir": str(inp.build_dir),
            "preserved": list(preserved),
            "removed": list(removed),
        },
    )

    # Later `docker compose build` runs pick up the deterministic tags.
    write_compose(release.compose_path, release.compose_for_build)

    write_compose(inp.build_dir, release.compose_for_release)
    write_manifest(inp.build_dir, release.manifest)
    validate_manifest(release.manifest, prerelease=True)

    copied = [AVATAR.default_name]
    atomic_copy(release.avatar_path, inp.build_dir / AVATAR.default_name)

    for release_file in OPTIONAL_RELEASE_FILES:
        source = get_asset_path(release_file, inp.source_dir)
        if source is None:
            continue
        atomic_copy(source, inp.build_dir / release_file.default_name)
        copied.append(release_file.default_name)

    _logger.info(
        "Release files copied",
        extra={"build_dir": str(inp.build_dir), "files": copied},
    )

    return BuildDirResult(
        build_dir=inp.build_dir,
        expected_archives=expected,
        preserved=preserved,
        removed=removed,
        copied_assets=tuple(copied),
    )
