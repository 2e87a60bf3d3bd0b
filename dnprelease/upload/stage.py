# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Upload stage: push the build directory to exactly one content-addressed store.

The backend is chosen by configuration (`upload_to: ipfs | swarm`) and only
that one is contacted. With `skip_upload` the stage does nothing and returns
no content address. Failures are not retried here. Re-running the pipeline
is the retry, and the build directory survives for it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from dnprelease.errors import ConfigurationError
from dnprelease.logging.logger import get_logger
from dnprelease.params import DEFAULT_ARCHITECTURE, get_image_path, get_legacy_image_path
from dnprelease.upload.base import ContentStore
from dnprelease.upload.ipfs import IpfsUploader
from dnprelease.upload.progress import LoggingProgressObserver, ProgressObserver, ProgressStream
from dnprelease.upload.swarm import SwarmUploader
from dnprelease.utils.filesystem import atomic_copy

_logger: logging.Logger = get_logger(__name__)

UPLOAD_BACKENDS: tuple[str, ...] = ("ipfs", "swarm")

_IPFS_PROVIDERS: dict[str, str] = {
    "dappnode": "http://ipfs.dappnode:5001",
    "infura": "https://ipfs.infura.io:5001",
    "localhost": "http://localhost:5001",
}

_SWARM_PROVIDERS: dict[str, str] = {
    "dappnode": "http://swarm.dappnode",
    "public": "https://swarm-gateways.net",
    "localhost": "http://localhost:8500",
}


def resolve_provider(backend: str, provider: str) -> str:
    """Expand a provider alias ("dappnode", "infura", ...) into a URL."""
    aliases = _IPFS_PROVIDERS if backend == "ipfs" else _SWARM_PROVIDERS
    if provider in aliases:
        return aliases[provider]
    if provider.startswith(("http://", "https://")):
        return provider
    # Bare host:port
    return f"http://{provider}"


def make_uploader(backend: str, provider: str) -> ContentStore:
    if backend == "ipfs":
        return IpfsUploader(resolve_provider(backend, provider))
    if backend == "swarm":
        return SwarmUploader(resolve_provider(backend, provider))
    raise ConfigurationError(
        f"Unknown upload backend '{backend}'. Must be one of: {', '.join(UPLOAD_BACKENDS)}"
    )


UploaderFactory = Callable[[str, str], ContentStore]


@dataclass(frozen=True)
class UploadInput:
    build_dir: Path
    name: str
    version: str
    backend: str
    provider: str
    skip_upload: bool = False


@dataclass(frozen=True)
class UploadResult:
    release_hash: Optional[str]
    backend: str
    provider: str


def ensure_legacy_archive(build_dir: Path, name: str, version: str) -> bool:
    """
    Copy the default-architecture archive to the legacy name if it is missing.

    Consumers that predate multi-arch releases only look for
    `<name>_<version>.tar.xz`. Returns True when a copy was made.
    """
    legacy_path = build_dir / get_legacy_image_path(name, version)
    default_path = build_dir / get_image_path(name, version, DEFAULT_ARCHITECTURE)
    if legacy_path.exists() or not default_path.is_file():
        return False
    atomic_copy(default_path, legacy_path)
    _logger.info(
        "Copied default archive to legacy name",
        extra={"source": default_path.name, "dest": legacy_path.name},
    )
    return True


def upload_release(
    inp: UploadInput,
    uploader_factory: UploaderFactory = make_uploader,
    observer: Optional[ProgressObserver] = None,
) -> UploadResult:
    """
    Upload the build directory and return its content address.

    Raises:
        UploadError: The backend failed. The build directory is left intact.
    """
    if inp.skip_upload:
        _logger.info("Upload skipped", extra={"backend": inp.backend})
        return UploadResult(release_hash=None, backend=inp.backend, provider=inp.provider)

    uploader = uploader_factory(inp.backend, inp.provider)

    if inp.backend == "ipfs":
        ensure_legacy_archive(inp.build_dir, inp.name, inp.version)

    progress_observer = observer if observer is not None else LoggingProgressObserver(_logger)
    with ProgressStream(progress_observer) as progress:
        release_hash = uploader.add_directory(inp.build_dir, progress.publish)

    _logger.info(
        "Release uploaded",
        extra={"backend": inp.backend, "provider": uploader.provider, "release_hash": release_hash},
    )
    return UploadResult(release_hash=release_hash, backend=inp.backend, provider=uploader.provider)
