# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Locating release assets in a package directory and verifying the avatar.
"""

import logging
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from dnprelease.errors import ConfigurationError, ValidationError
from dnprelease.logging.logger import get_logger
from dnprelease.params import ReleaseFile

_logger: logging.Logger = get_logger(__name__)

# Avatars are displayed in a square frame. Smaller than this looks blurry.
MIN_AVATAR_SIZE_PX = 100


def get_asset_path(release_file: ReleaseFile, directory: Path) -> Optional[Path]:
    """
    Find the file in `directory` that matches `release_file`.

    The default name wins when it exists; otherwise the first match in sorted
    order. Returns None when nothing matches.
    """
    default = directory / release_file.default_name
    if default.is_file():
        return default

    for candidate in sorted(directory.iterdir()):
        if candidate.is_file() and release_file.regex.search(candidate.name):
            return candidate
    return None


def get_asset_path_required(release_file: ReleaseFile, directory: Path) -> Path:
    """Like get_asset_path, but a missing file is a configuration error."""
    path = get_asset_path(release_file, directory)
    if path is None:
        raise ConfigurationError(
            f"No {release_file.id} file found in {directory}. "
            f"Add one named {release_file.default_name}."
        )
    return path


def verify_avatar(avatar_path: Path) -> None:
    """
    Make sure the avatar is a real, square PNG.

    Raises:
        ValidationError: On unreadable files, non-PNG data or bad dimensions.
    """
    try:
        with Image.open(avatar_path) as image:
            image_format = image.format
            width, height = image.size
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as err:
        raise ValidationError(f"Avatar {avatar_path} is not a valid image: {err}") from err

    problems: list[str] = []
    if image_format != "PNG":
        problems.append(f"format is {image_format}, expected PNG")
    if width != height:
        problems.append(f"avatar must be square, got {width}x{height}")
    if min(width, height) < MIN_AVATAR_SIZE_PX:
        problems.append(f"avatar must be at least {MIN_AVATAR_SIZE_PX}px wide, got {width}px")

    if problems:
        raise ValidationError(f"Invalid avatar {avatar_path}: {'; '.join(problems)}", problems)

    _logger.debug(
        "Avatar verified",
        extra={"path": str(avatar_path), "width": width, "height": height},
    )
