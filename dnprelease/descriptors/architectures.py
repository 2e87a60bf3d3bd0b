# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Build targets: which architectures a release is built for.

A package either declares `architectures` in its manifest (multi-arch, one
archive per architecture, built with buildx) or it doesn't (single-arch, one
legacy-named archive built with the compose builder). That choice is made
once, during normalization, and every later stage reads it from the
BuildTarget instead of re-checking the manifest.
"""

from dataclasses import dataclass
from typing import Sequence, Union

from dnprelease.errors import ConfigurationError
from dnprelease.params import (
    DEFAULT_ARCHITECTURE,
    SUPPORTED_ARCHITECTURES,
    get_image_path,
    get_legacy_image_path,
)


@dataclass(frozen=True)
class MultiArch:
    architectures: tuple[str, ...]

    def archive_names(self, name: str, version: str) -> dict[str, str]:
        """{architecture: archive filename} in declaration order."""
        return {arch: get_image_path(name, version, arch) for arch in self.architectures}


@dataclass(frozen=True)
class SingleArch:
    """
    No architecture list declared: one default-architecture build, saved
    under the legacy archive name older consumers look for.
    """

    def archive_names(self, name: str, version: str) -> dict[str, str]:
        return {DEFAULT_ARCHITECTURE: get_legacy_image_path(name, version)}


BuildTarget = Union[MultiArch, SingleArch]


def parse_architectures(values: Sequence[object]) -> tuple[str, ...]:
    """
    Validate a manifest's `architectures` list.

    Unknown architectures are rejected, duplicates dropped (first occurrence
    wins), and the default architecture must be present: consumers that only
    understand single-arch releases read the amd64 image.

    Raises:
        ConfigurationError: On any of the above.
    """
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise ConfigurationError("Manifest 'architectures' must be a list")

    parsed: list[str] = []
    for value in values:
        if value not in SUPPORTED_ARCHITECTURES:
            raise ConfigurationError(
                f"Unsupported architecture '{value}'. "
                f"Supported: {', '.join(SUPPORTED_ARCHITECTURES)}"
            )
        if value not in parsed:
            parsed.append(str(value))

    if DEFAULT_ARCHITECTURE not in parsed:
        raise ConfigurationError(
            f"Manifest 'architectures' must include {DEFAULT_ARCHITECTURE}"
        )
    return tuple(parsed)


def build_target_from_manifest(manifest: dict[str, object]) -> BuildTarget:
    architectures = manifest.get("architectures")
    if architectures is None:
        return SingleArch()
    return MultiArch(parse_architectures(architectures))  # type: ignore[arg-type]
