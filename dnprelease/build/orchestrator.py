# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Image build orchestrator: one packed image archive per target architecture.

Each architecture moves through a small state machine:

    PENDING -> BUILDING -> ARCHIVED | TIMED_OUT | FAILED
    PENDING -> BUILDING -> BUILT    (images built, saving switched off)
    PENDING -> SKIPPED           (archive already on disk from a previous run)

For every architecture the steps are:
  1. pull the external images for that platform and re-tag them with the
     package tag, so they get saved into the archive alongside local images
  2. build the local images (buildx for multi-arch targets, the compose
     builder for single-arch targets)
  3. `docker save` every image tag into the archive, xz compressed

All three steps share one deadline. Architectures are built one after the
other: buildx --load puts every platform's image under the same local tag, so
two architectures building at once would overwrite each other's images
before they are saved.

A failure stops the run, but archives already produced for other
architectures stay where they are. The next run sees them and skips those
architectures.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from dnprelease.build.docker import CommandFailed, CommandTimeout, Deadline, DockerRunner
from dnprelease.descriptors.architectures import BuildTarget, MultiArch
from dnprelease.descriptors.compose import Compose, PackageImage, get_service_build
from dnprelease.errors import BuildError, BuildTimeoutError
from dnprelease.logging.logger import get_logger
from dnprelease.utils.hashing import compute_sha256

_logger: logging.Logger = get_logger(__name__)


class ArchState(str, Enum):
    PENDING = "pending"
    BUILDING = "building"
    BUILT = "built"
    ARCHIVED = "archived"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class ImageArchive:
    """A finished archive in the build directory."""

    architecture: str
    path: Path
    sha256: str


@dataclass(frozen=True)
class BuildImagesInput:
    build_dir: Path
    name: str
    version: str
    target: BuildTarget
    images: tuple[PackageImage, ...]
    compose_path: Path
    compose_for_build: Compose
    timeout_seconds: float
    skip_save: bool = False


@dataclass(frozen=True)
class BuildImagesResult:
    archives: tuple[ImageArchive, ...]
    states: dict[str, ArchState] = field(default_factory=dict)


def _pull_external_images(
    runner: DockerRunner,
    images: tuple[PackageImage, ...],
    deadline: Deadline,
    architecture: str,
    platform: Optional[str],
) -> None:
    """Pull every external image and re-tag it under the package's own tag."""
    for image in images:
        if not image.external:
            continue
        source = image.original_image_tag or ""
        pull_args = ["pull", source] if platform is None else ["pull", "--platform", platform, source]
        try:
            runner.run(pull_args, deadline)
            runner.run(["tag", source, image.image_tag], deadline)
        except CommandFailed as err:
            raise BuildError(
                architecture, f"cannot resolve external image '{source}': {err}"
            ) from err


def _save_archive(
    runner: DockerRunner,
    images: tuple[PackageImage, ...],
    dest: Path,
    deadline: Deadline,
    skip_save: bool,
) -> None:
    if skip_save:
        _logger.info("Skipping image save", extra={"dest": str(dest)})
        return
    runner.save([image.image_tag for image in images], dest, deadline)


def build_with_buildx(
    runner: DockerRunner,
    architecture: str,
    images: tuple[PackageImage, ...],
    compose: Compose,
    compose_path: Path,
    dest: Path,
    deadline: Deadline,
    skip_save: bool = False,
) -> None:
    """Cross-build every local image for one platform with buildx, then save."""
    _pull_external_images(runner, images, deadline, architecture, platform=architecture)

    for image in images:
        if image.external:
            continue
        context, dockerfile, build_args = get_service_build(
            compose, image.service_name, compose_path.parent
        )
        args = ["buildx", "build", "--platform", architecture, "--tag", image.image_tag, "--load"]
        if dockerfile:
            args += ["--file", str(context / dockerfile)]
        for key, value in sorted(build_args.items()):
            args += ["--build-arg", f"{key}={value}"]
        args.append(str(context))
        runner.run(args, deadline)

    _save_archive(runner, images, dest, deadline, skip_save)


def build_with_compose(
    runner: DockerRunner,
    architecture: str,
    images: tuple[PackageImage, ...],
    compose_path: Path,
    dest: Path,
    deadline: Deadline,
    skip_save: bool = False,
) -> None:
    """Native build through the compose builder, no emulation, then save."""
    _pull_external_images(runner, images, deadline, architecture, platform=None)
    runner.run(["compose", "-f", str(compose_path), "build"], deadline, cwd=compose_path.parent)
    _save_archive(runner, images, dest, deadline, skip_save)


def build_images(inp: BuildImagesInput, runner: DockerRunner) -> BuildImagesResult:
    """
    Produce every archive the build target calls for.

    Raises:
        BuildTimeoutError: An architecture ran past `timeout_seconds`.
        BuildError: An architecture failed to build, pull or save.
    """
    archive_names = inp.target.archive_names(inp.name, inp.version)
    states: dict[str, ArchState] = {arch: ArchState.PENDING for arch in archive_names}
    archives: list[ImageArchive] = []

    for architecture, filename in archive_names.items():
        dest = inp.build_dir / filename

        if dest.is_file():
            states[architecture] = ArchState.SKIPPED
            archives.append(ImageArchive(architecture, dest, compute_sha256(dest)))
            _logger.info(
                "Archive already present, skipping build",
                extra={"architecture": architecture, "path": str(dest)},
            )
            continue

        states[architecture] = ArchState.BUILDING
        _logger.info(
            "Building architecture",
            extra={
                "architecture": architecture,
                "dest": str(dest),
                "timeout_seconds": inp.timeout_seconds,
            },
        )
        deadline = Deadline(inp.timeout_seconds)

        try:
            if isinstance(inp.target, MultiArch):
                build_with_buildx(
                    runner,
                    architecture,
                    inp.images,
                    inp.compose_for_build,
                    inp.compose_path,
                    dest,
                    deadline,
                    inp.skip_save,
                )
            else:
                build_with_compose(
                    runner,
                    architecture,
                    inp.images,
                    inp.compose_path,
                    dest,
                    deadline,
                    inp.skip_save,
                )
        except CommandTimeout as err:
            states[architecture] = ArchState.TIMED_OUT
            _logger.error(
                "Build timed out",
                extra={"architecture": architecture, "states": dict(states)},
            )
            raise BuildTimeoutError(architecture, err.elapsed_seconds, inp.timeout_seconds) from err
        except CommandFailed as err:
            states[architecture] = ArchState.FAILED
            _logger.error(
                "Build failed",
                extra={"architecture": architecture, "states": dict(states)},
            )
            raise BuildError(architecture, str(err)) from err
        except BuildError:
            states[architecture] = ArchState.FAILED
            _logger.error(
                "Build failed",
                extra={"architecture": architecture, "states": dict(states)},
            )
            raise

        if inp.skip_save:
            states[architecture] = ArchState.BUILT
            _logger.info("Architecture built, no archive saved", extra={"architecture": architecture})
            continue

        archive = ImageArchive(architecture, dest, compute_sha256(dest))
        archives.append(archive)
        states[architecture] = ArchState.ARCHIVED
        _logger.info(
            "Architecture archived",
            extra={
                "architecture": architecture,
                "path": str(dest),
                "sha256": archive.sha256,
                "elapsed_seconds": round(deadline.elapsed(), 1),
            },
        )

    return BuildImagesResult(archives=tuple(archives), states=states)
