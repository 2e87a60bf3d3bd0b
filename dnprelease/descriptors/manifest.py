# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Reading and writing the package manifest (dappnode_package.json).

The manifest is kept as a plain dict: the pipeline only reads a few fields
(name, version, architectures, upstreamVersion) and must round-trip
everything else untouched into the build directory.
"""

import json
import logging
from pathlib import Path
from typing import Any

from dnprelease.descriptors.assets import get_asset_path_required
from dnprelease.errors import ConfigurationError
from dnprelease.logging.logger import get_logger
from dnprelease.params import MANIFEST
from dnprelease.utils.filesystem import atomic_write

_logger: logging.Logger = get_logger(__name__)

Manifest = dict[str, Any]


def read_manifest(directory: Path) -> Manifest:
    """
    Load the manifest from a package directory.

    Raises:
        ConfigurationError: Missing file, invalid JSON, or not a JSON object.
    """
    path = get_asset_path_required(MANIFEST, directory)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as err:
        raise ConfigurationError(f"Invalid JSON in manifest {path}: {err}") from err

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Manifest {path} must contain a JSON object, got {type(data).__name__}"
        )
    for key in ("name", "version"):
        if not isinstance(data.get(key), str) or not data[key]:
            raise ConfigurationError(f"Manifest {path} is missing '{key}'")

    _logger.debug("Manifest loaded", extra={"path": str(path), "package": data["name"]})
    return data


def write_manifest(directory: Path, manifest: Manifest) -> Path:
    """Write the manifest under its default name. Output is stable for identical input."""
    path = directory / MANIFEST.default_name
    atomic_write(path, json.dumps(manifest, indent=2) + "\n")
    _logger.debug("Manifest written", extra={"path": str(path)})
    return path
