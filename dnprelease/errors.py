# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Error taxonomy for the release pipeline.

Every failure a pipeline stage can raise lives here so the CLI can map them to
exit codes without importing the stages themselves.

  ConfigurationError  bad manifest/compose shape, raised before anything is built
  ValidationError     manifest schema or avatar problems, raised before upload
  BuildError          one architecture failed to build; other archives stay put
  BuildTimeoutError   one architecture ran out of time; no partial archive left
  UploadError         the content-addressed store rejected or lost the upload

MaintenanceWarning is a Warning, not an error: cache pruning failures are
logged with it and never escape the record stage.
"""

from typing import Optional


class ReleaseError(Exception):
    """Base for every error raised by the release pipeline."""


class ConfigurationError(ReleaseError):
    """The package descriptors have an invalid shape. Nothing has been built yet."""


class ValidationError(ReleaseError):
    """
    The manifest failed structural or prerelease schema checks, or the avatar
    is malformed.

    `problems` holds one human readable line per violation so callers can log
    them individually.
    """

    def __init__(self, message: str, problems: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.problems: list[str] = list(problems or [])


class BuildError(ReleaseError):
    """A container build for one architecture failed."""

    def __init__(self, architecture: str, message: str) -> None:
        super().__init__(f"[{architecture}] {message}")
        self.architecture = architecture


class BuildTimeoutError(BuildError):
    """A container build exceeded its time budget and was killed."""

    def __init__(self, architecture: str, elapsed_seconds: float, timeout_seconds: float) -> None:
        super().__init__(
            architecture,
            f"build timed out after {elapsed_seconds:.1f}s (limit {timeout_seconds:.1f}s)",
        )
        self.elapsed_seconds = elapsed_seconds
        self.timeout_seconds = timeout_seconds


class UploadError(ReleaseError):
    """The content-addressed store failed to accept the release directory."""

    def __init__(self, backend: str, message: str) -> None:
        super().__init__(f"{backend} upload failed: {message}")
        self.backend = backend


class RepositoryNotFoundError(ReleaseError):
    """The remote registry has no repository for this package yet."""


class MaintenanceWarning(UserWarning):
    """Housekeeping (cache pruning) failed. The release itself is fine."""
