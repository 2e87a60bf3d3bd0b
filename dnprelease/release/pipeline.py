# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release build & upload pipeline.

Five stages, strictly in order, each one consuming what the previous one
produced:

    normalize_descriptors   manifest + compose -> NormalizedRelease
    prepare_build_dir       NormalizedRelease  -> clean build directory with release files
    build_images            build directory    -> one image archive per architecture
    upload_release          build directory    -> content address
    save_release_record     content address    -> releases.json, context.release_multi_hash

Every stage takes a frozen input object and returns a frozen result; the
shared PipelineContext is replaced, never mutated. Configuration and
validation errors stop the run before anything is built. Build and upload
errors stop it too, but leave the build directory in a state the next run
resumes from.
"""

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dnprelease.build.docker import DockerRunner
from dnprelease.build.orchestrator import BuildImagesInput, build_images
from dnprelease.build.timeout import DEFAULT_TIMEOUT, parse_timeout
from dnprelease.errors import ConfigurationError
from dnprelease.logging.logger import get_logger
from dnprelease.params import UPSTREAM_VERSION_VARNAME
from dnprelease.release.build_dir import BuildDirInput, default_build_dir, prepare_build_dir
from dnprelease.release.context import PipelineContext
from dnprelease.release.normalizer import NormalizeInput, normalize_descriptors
from dnprelease.release.record import RecordInput, save_release_record
from dnprelease.upload.progress import ProgressObserver
from dnprelease.upload.stage import (
    UPLOAD_BACKENDS,
    UploaderFactory,
    UploadInput,
    make_uploader,
    upload_release,
)

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class PipelineOptions:
    """Everything a run needs. Built by the CLI from flags and the config file."""

    dir: Path
    build_dir: Optional[Path] = None
    upload_to: str = "ipfs"
    ipfs_provider: str = "dappnode"
    swarm_provider: str = "dappnode"
    timeout: str = DEFAULT_TIMEOUT
    skip_save: bool = False
    skip_upload: bool = False
    cache_dir: Optional[Path] = None
    cache_max_entries: int = 200
    cache_max_age_days: int = 90
    docker_bin: str = "docker"


def run_build_and_upload(
    options: PipelineOptions,
    runner: Optional[DockerRunner] = None,
    uploader_factory: UploaderFactory = make_uploader,
    env: Optional[Mapping[str, str]] = None,
    progress_observer: Optional[ProgressObserver] = None,
) -> PipelineContext:
    """
    Run every stage and return the final context.

    With `skip_upload` the run ends after the image builds: no upload, no
    release record, and both hashes on the context stay None.

    Raises:
        ConfigurationError, ValidationError: Before any build starts.
        BuildError, BuildTimeoutError: During image builds.
        UploadError: During upload.
    """
    if options.upload_to not in UPLOAD_BACKENDS:
        raise ConfigurationError(
            f"Unknown upload backend '{options.upload_to}'. "
            f"Must be one of: {', '.join(UPLOAD_BACKENDS)}"
        )
    env = os.environ if env is None else env
    build_timeout = parse_timeout(options.timeout)
    runner = runner if runner is not None else DockerRunner(options.docker_bin)

    _logger.info("Normalizing descriptors", extra={"dir": str(options.dir)})
    release = normalize_descriptors(
        NormalizeInput(
            directory=options.dir,
            env_upstream_version=env.get(UPSTREAM_VERSION_VARNAME) or None,
        )
    )

    build_dir = options.build_dir or default_build_dir(options.dir, release.version)
    context = PipelineContext(build_dir=build_dir)

    _logger.info("Preparing build directory", extra={"build_dir": str(build_dir)})
    prepare_build_dir(BuildDirInput(build_dir=build_dir, source_dir=options.dir, release=release))

    _logger.info("Building images", extra={"target": type(release.target).__name__})
    built = build_images(
        BuildImagesInput(
            build_dir=build_dir,
            name=release.name,
            version=release.version,
            target=release.target,
            images=release.images,
            compose_path=release.compose_path,
            compose_for_build=release.compose_for_build,
            timeout_seconds=build_timeout,
            skip_save=options.skip_save,
        ),
        runner,
    )
    context = dataclasses.replace(context, archives=built.archives)

    provider = options.swarm_provider if options.upload_to == "swarm" else options.ipfs_provider
    uploaded = upload_release(
        UploadInput(
            build_dir=build_dir,
            name=release.name,
            version=release.version,
            backend=options.upload_to,
            provider=provider,
            skip_upload=options.skip_upload,
        ),
        uploader_factory=uploader_factory,
        observer=progress_observer,
    )

    if uploaded.release_hash is None:
        _logger.info("Pipeline finished without upload", extra={"build_dir": str(build_dir)})
        return context

    context = dataclasses.replace(context, release_hash=uploaded.release_hash)
    context = save_release_record(
        RecordInput(
            directory=options.dir,
            version=release.version,
            release_hash=uploaded.release_hash,
            destination=uploaded.provider,
            cache_dir=options.cache_dir,
            cache_max_entries=options.cache_max_entries,
            cache_max_age_days=options.cache_max_age_days,
        ),
        context,
    )

    _logger.info(
        "Pipeline finished",
        extra={
            "version": release.version,
            "release_hash": context.release_multi_hash,
            "archives": [archive.path.name for archive in context.archives],
        },
    )
    return context
