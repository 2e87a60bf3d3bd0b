# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release record writer: the last pipeline stage.

The package directory keeps a `releases.json` with every version ever
uploaded from it:

    {
      "1.0.0": {
        "hash": "/ipfs/QmNqDvqAyy3pN3PvymB6chM7S1FgYyive8LosVKUuaDdfd",
        "uploadedTo": {"http://ipfs.dappnode:5001": "2026-10-19T10:00:00+00:00"}
      }
    }

Re-uploading a version overwrites its hash and adds the new destination to
`uploadedTo`. After writing, the upload cache is pruned. That step is
housekeeping, and a failure there is logged and swallowed.
"""

import dataclasses
import json
import logging
import warnings
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from dnprelease.errors import ConfigurationError, MaintenanceWarning
from dnprelease.logging.logger import get_logger
from dnprelease.params import RELEASE_RECORD_FILENAME
from dnprelease.release.cache import UploadCache, prune_cache
from dnprelease.release.context import PipelineContext
from dnprelease.utils.filesystem import atomic_write

_logger: logging.Logger = get_logger(__name__)


def read_release_records(directory: Path) -> dict[str, dict[str, Any]]:
    """
    Load the release record of a package directory. Missing file -> {}.

    Raises:
        ConfigurationError: The file exists but isn't a JSON object.
    """
    path = directory / RELEASE_RECORD_FILENAME
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as err:
        raise ConfigurationError(f"Corrupt release record {path}: {err}") from err
    if not isinstance(data, dict):
        raise ConfigurationError(f"Release record {path} must be a JSON object")
    return data


def add_release_record(
    directory: Path,
    version: str,
    hash: str,
    to: str,
    now: Optional[datetime] = None,
) -> dict[str, dict[str, Any]]:
    """Insert or update `version` in the release record and return the whole record."""
    records = read_release_records(directory)
    entry = records.get(version)
    if not isinstance(entry, dict):
        entry = {}

    uploaded_to = entry.get("uploadedTo")
    if not isinstance(uploaded_to, dict):
        uploaded_to = {}
    uploaded_to[to] = (now or datetime.now(tz=timezone.utc)).isoformat()

    records[version] = {"hash": hash, "uploadedTo": uploaded_to}
    atomic_write(
        directory / RELEASE_RECORD_FILENAME,
        json.dumps(records, indent=2, sort_keys=True) + "\n",
    )
    return records


@dataclass(frozen=True)
class RecordInput:
    directory: Path
    version: str
    release_hash: str
    destination: str
    cache_dir: Optional[Path] = None
    cache_max_entries: int = 200
    cache_max_age_days: int = 90


def _housekeeping(inp: RecordInput) -> None:
    cache = UploadCache(inp.cache_dir)
    cache.remember(inp.release_hash, inp.directory, inp.version)
    prune_cache(cache, max_entries=inp.cache_max_entries, max_age_days=inp.cache_max_age_days)


def save_release_record(
    inp: RecordInput,
    context: PipelineContext,
    housekeeping: Callable[[RecordInput], None] = _housekeeping,
) -> PipelineContext:
    """
    Persist the upload result and publish it on the context.

    Raises:
        OSError, ConfigurationError: The release record could not be written.
            Cache failures never propagate.
    """
    add_release_record(inp.directory, inp.version, inp.release_hash, inp.destination)
    _logger.info(
        "Release record saved",
        extra={"version": inp.version, "release_hash": inp.release_hash, "to": inp.destination},
    )

    updated = dataclasses.replace(context, release_multi_hash=inp.release_hash)

    try:
        housekeeping(inp)
    except Exception as err:
        _logger.warning(
            "Error on cache pruning",
            extra={"category": MaintenanceWarning.__name__, "error": str(err)},
            exc_info=True,
        )
        warnings.warn(f"Cache pruning failed: {err}", MaintenanceWarning, stacklevel=2)

    return updated
