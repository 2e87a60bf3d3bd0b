# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Local upload cache and its pruning.

Every successful upload is remembered in the user's cache directory
(`uploads.json`: content address -> package dir, version, timestamp) so
tooling can show recent releases without hitting the network. The cache is a
convenience only. Losing it, or failing to prune it, never affects a
release. Pruning is conservative: it only ever touches files it owns inside
the cache directory.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from dnprelease.logging.logger import get_logger
from dnprelease.utils.filesystem import TEMP_PREFIX, atomic_write, ensure_directory

_logger: logging.Logger = get_logger(__name__)

CACHE_FILENAME = "uploads.json"
DEFAULT_MAX_ENTRIES = 200
DEFAULT_MAX_AGE_DAYS = 90


def default_cache_dir() -> Path:
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "dnprelease"


@dataclass(frozen=True)
class PruneResult:
    """Outcome of a cache pruning run."""

    removed_entries: int
    kept_entries: int
    removed_temp_files: int


class UploadCache:
    """JSON-file backed record of recent uploads."""

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = directory if directory is not None else default_cache_dir()
        self.path = self.directory / CACHE_FILENAME

    def load(self) -> dict[str, dict[str, Any]]:
        """
        Read the cache. A missing file is an empty cache.

        Raises:
            ValueError: The cache file exists but isn't a JSON object.
        """
        if not self.path.is_file():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Upload cache {self.path} is not a JSON object")
        return data

    def save(self, entries: dict[str, dict[str, Any]]) -> None:
        ensure_directory(self.directory)
        atomic_write(self.path, json.dumps(entries, indent=2, sort_keys=True) + "\n")

    def remember(
        self,
        release_hash: str,
        directory: Path,
        version: str,
        now: Optional[datetime] = None,
    ) -> None:
        timestamp = (now or datetime.now(tz=timezone.utc)).isoformat()
        entries = self.load()
        entries[release_hash] = {"dir": str(directory), "version": version, "ts": timestamp}
        self.save(entries)


def _parse_ts(value: object) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def prune_cache(
    cache: Optional[UploadCache] = None,
    max_entries: int = DEFAULT_MAX_ENTRIES,
    max_age_days: int = DEFAULT_MAX_AGE_DAYS,
    now: Optional[datetime] = None,
) -> PruneResult:
    """
    Drop cache entries older than `max_age_days`, then keep only the newest
    `max_entries`. Entries with unreadable timestamps count as expired.
    Leftover temp files from interrupted writes are removed too.

    Raises:
        OSError, ValueError: The caller decides whether that matters. The
            release pipeline logs it and carries on.
    """
    cache = cache if cache is not None else UploadCache()
    now = now or datetime.now(tz=timezone.utc)
    cutoff = now - timedelta(days=max_age_days)

    removed_temp = 0
    if cache.directory.is_dir():
        for tmp_file in sorted(cache.directory.glob(f"{TEMP_PREFIX}*")):
            if tmp_file.is_file():
                tmp_file.unlink()
                removed_temp += 1

    entries = cache.load()
    dated: list[tuple[datetime, str]] = []
    for release_hash, entry in entries.items():
        ts = _parse_ts(entry.get("ts")) if isinstance(entry, dict) else None
        if ts is not None and ts >= cutoff:
            dated.append((ts, release_hash))

    dated.sort(reverse=True)
    keep = {release_hash for _, release_hash in dated[:max_entries]}
    pruned = {h: e for h, e in entries.items() if h in keep}
    removed = len(entries) - len(pruned)

    if removed:
        cache.save(pruned)

    _logger.debug(
        "Upload cache pruned",
        extra={
            "cache": str(cache.path),
            "removed_entries": removed,
            "kept_entries": len(pruned),
            "removed_temp_files": removed_temp,
        },
    )
    return PruneResult(
        removed_entries=removed,
        kept_entries=len(pruned),
        removed_temp_files=removed_temp,
    )
