# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Descriptor normalizer: the first pipeline stage.

Reads the manifest and compose file of a package directory, rejects shapes
the release process no longer supports, and works out everything later
stages need: name and version, build target, the build and release compose
variants, the list of images the archive must contain, and the avatar.

Nothing is written here. If this stage fails, the build directory has not
been touched.
"""

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dnprelease.descriptors.architectures import BuildTarget, build_target_from_manifest
from dnprelease.descriptors.assets import get_asset_path_required, verify_avatar
from dnprelease.descriptors.compose import (
    Compose,
    PackageImage,
    get_compose_package_images,
    get_compose_path,
    parse_compose_upstream_version,
    read_compose,
    update_compose_image_tags,
)
from dnprelease.descriptors.manifest import read_manifest
from dnprelease.descriptors.validator import validate_manifest
from dnprelease.errors import ConfigurationError
from dnprelease.logging.logger import get_logger
from dnprelease.params import AVATAR

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class NormalizeInput:
    directory: Path
    env_upstream_version: Optional[str] = None


@dataclass(frozen=True)
class NormalizedRelease:
    """
    Everything derived from the package descriptors.

    `manifest` is a private copy with upstreamVersion injected; the compose
    variants are deep copies of the loaded document.
    """

    manifest: dict[str, Any]
    name: str
    version: str
    target: BuildTarget
    compose_path: Path
    compose_for_build: Compose
    compose_for_release: Compose
    images: tuple[PackageImage, ...]
    avatar_path: Path


def _reject_legacy_fields(manifest: dict[str, Any]) -> None:
    if "image" in manifest:
        raise ConfigurationError(
            "Packages must keep all docker related data in the compose file. "
            "Move the settings in 'manifest.image' to docker-compose.yml and "
            "delete the 'image' property."
        )
    if "avatar" in manifest:
        raise ConfigurationError(
            "The avatar must be a file in the package directory, not a manifest "
            f"property. Add it as {AVATAR.default_name} and delete the 'avatar' property."
        )


def normalize_descriptors(inp: NormalizeInput) -> NormalizedRelease:
    """
    Load, check and derive the package descriptors.

    Raises:
        ConfigurationError: Legacy image/avatar fields, uppercase name, bad
            architectures, or an unreadable compose file.
        ValidationError: Manifest schema violations or a malformed avatar.
    """
    manifest = copy.deepcopy(read_manifest(inp.directory))

    _reject_legacy_fields(manifest)

    name: str = manifest["name"]
    version: str = manifest["version"]
    if any(ch.isupper() for ch in name):
        raise ConfigurationError(f"Package name '{name}' in the manifest must be lowercase")

    validate_manifest(manifest)
    target = build_target_from_manifest(manifest)

    compose_path = get_compose_path(inp.directory)
    compose_for_dev = read_compose(inp.directory)
    compose_for_build = update_compose_image_tags(compose_for_dev, manifest)
    compose_for_release = update_compose_image_tags(
        compose_for_dev, manifest, edit_external_images=True
    )
    images = tuple(get_compose_package_images(compose_for_dev, manifest))

    avatar_path = get_asset_path_required(AVATAR, inp.directory)
    verify_avatar(avatar_path)

    upstream_version = parse_compose_upstream_version(compose_for_dev) or inp.env_upstream_version
    if upstream_version:
        manifest["upstreamVersion"] = upstream_version

    _logger.info(
        "Descriptors normalized",
        extra={
            "package": name,
            "version": version,
            "target": type(target).__name__,
            "images": [image.image_tag for image in images],
            "upstream_version": upstream_version,
        },
    )

    return NormalizedRelease(
        manifest=manifest,
        name=name,
        version=version,
        target=target,
        compose_path=compose_path,
        compose_for_build=compose_for_build,
        compose_for_release=compose_for_release,
        images=images,
        avatar_path=avatar_path,
    )
