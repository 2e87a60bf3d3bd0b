# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schema for dnprelease.

One frozen pydantic model per section of the YAML file:

    global:
      config_version: "1.0.0"
      log_level: INFO
    release:
      upload_to: ipfs
      ipfs_provider: dappnode
      timeout: 60min
      cache:
        max_entries: 200

All models use:
  - frozen=True: immutability after construction
  - extra="forbid": a typo'd key fails loudly instead of being ignored
  - validate_default=True: defaults are type-checked too

Command-line flags override these values; the merged result is a
PipelineOptions instance.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dnprelease.build.timeout import DEFAULT_TIMEOUT, parse_timeout
from dnprelease.errors import ConfigurationError


class GlobalConfig(BaseModel):
    """Cross-cutting settings: schema version and logging."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{value}'")
        return upper


class CacheConfig(BaseModel):
    """Where the local upload cache lives and how much of it to keep."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    directory: Optional[str] = Field(
        default=None,
        description="Cache directory; defaults to $XDG_CACHE_HOME/dnprelease",
    )
    max_entries: int = Field(default=200, ge=1, description="Newest uploads to keep")
    max_age_days: int = Field(default=90, ge=1, description="Uploads older than this are dropped")


class ReleaseConfig(BaseModel):
    """Build and upload settings."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    upload_to: Literal["ipfs", "swarm"] = Field(
        default="ipfs", description="Content-addressed store to upload the release to"
    )
    ipfs_provider: str = Field(
        default="dappnode",
        description="IPFS API endpoint or alias: dappnode, infura, localhost",
    )
    swarm_provider: str = Field(
        default="dappnode",
        description="Swarm gateway or alias: dappnode, public, localhost",
    )
    timeout: str = Field(
        default=DEFAULT_TIMEOUT,
        description="Per-architecture build timeout, e.g. '60min', '1h 30m', '5000' (ms)",
    )
    skip_save: bool = Field(default=False, description="Build images but don't save archives")
    skip_upload: bool = Field(default=False, description="Stop after building")
    build_dir: Optional[str] = Field(
        default=None,
        description="Build directory; defaults to build_<version> inside the package",
    )
    docker_bin: str = Field(default="docker", description="docker executable to invoke")
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @field_validator("timeout")
    @classmethod
    def _parseable_timeout(cls, value: str) -> str:
        try:
            parse_timeout(value)
        except ConfigurationError as err:
            raise ValueError(str(err)) from err
        return value


class DnpReleaseConfig(BaseModel):
    """Top-level config container."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)
