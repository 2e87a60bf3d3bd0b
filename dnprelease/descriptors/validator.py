# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Manifest schema validation.

Two strictness levels:
  - normal: the shape every manifest must have while it is being developed
  - prerelease: applied to the finalized manifest written into the build
    directory, right before it becomes part of an immutable release

Violations are collected rather than raised one at a time, so a developer sees
every problem in one run.
"""

import copy
import logging
from typing import Any

from jsonschema import Draft202012Validator

from dnprelease.errors import ValidationError
from dnprelease.logging.logger import get_logger
from dnprelease.params import SUPPORTED_ARCHITECTURES

_logger: logging.Logger = get_logger(__name__)

_SEMVER_PATTERN = (
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(-[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*)?(\+[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*)?$"
)
_PLAIN_RELEASE_PATTERN = r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$"

MANIFEST_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["name", "version"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "version": {"type": "string", "pattern": _SEMVER_PATTERN},
        "upstreamVersion": {"type": "string"},
        "architectures": {
            "type": "array",
            "minItems": 1,
            "items": {"enum": list(SUPPORTED_ARCHITECTURES)},
        },
        "description": {"type": "string"},
        "type": {"type": "string"},
        "license": {"type": "string"},
    },
    # Legacy fields, now owned by the compose file and the avatar asset.
    "not": {"anyOf": [{"required": ["image"]}, {"required": ["avatar"]}]},
}


def _prerelease_schema() -> dict[str, Any]:
    schema = copy.deepcopy(MANIFEST_SCHEMA)
    props = schema["properties"]
    props["version"]["pattern"] = _PLAIN_RELEASE_PATTERN
    props["architectures"]["uniqueItems"] = True
    props["upstreamVersion"]["minLength"] = 1
    return schema


_NORMAL_VALIDATOR = Draft202012Validator(MANIFEST_SCHEMA)
_PRERELEASE_VALIDATOR = Draft202012Validator(_prerelease_schema())


def _describe(error: Any) -> str:
    location = "/".join(str(part) for part in error.absolute_path) or "<root>"
    if error.validator == "not":
        return f"{location}: manifest must not declare 'image' or 'avatar'"
    return f"{location}: {error.message}"


def validate_manifest(manifest: dict[str, Any], prerelease: bool = False) -> None:
    """
    Validate a manifest dict.

    Raises:
        ValidationError: With one entry per violation in `problems`.
    """
    validator = _PRERELEASE_VALIDATOR if prerelease else _NORMAL_VALIDATOR
    problems = sorted(_describe(err) for err in validator.iter_errors(manifest))

    if problems:
        mode = "prerelease" if prerelease else "normal"
        _logger.error(
            "Manifest validation failed",
            extra={"mode": mode, "problems": problems},
        )
        raise ValidationError(
            f"Manifest failed {mode} validation:\n  " + "\n  ".join(problems),
            problems,
        )
