# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the dnprelease CLI.

Each handler loads the optional config file, merges it with the command-line
flags, runs its operation and turns the outcome into an exit code. No
print() calls. Everything goes through the structured logger.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from dnprelease.cli.exit_codes import (
    CONFIG_ERROR,
    RUNTIME_ERROR,
    SUCCESS,
    VALIDATION_ERROR,
)
from dnprelease.config.exceptions import ConfigError
from dnprelease.config.loader import load_config
from dnprelease.config.schema import DnpReleaseConfig, ReleaseConfig
from dnprelease.errors import (
    BuildError,
    BuildTimeoutError,
    ConfigurationError,
    UploadError,
    ValidationError,
)
from dnprelease.logging.logger import configure_package_logging, get_logger
from dnprelease.release.pipeline import PipelineOptions, run_build_and_upload
from dnprelease.release.record import read_release_records


def _load_config_and_logger(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[DnpReleaseConfig], logging.Logger]:
    """
    Shared setup: load the config file (if any) and configure logging.

    Returns (exit_code, config, logger). A non-SUCCESS exit code means the
    caller should return it immediately.
    """
    logger = get_logger(f"dnprelease.cli.{command_name}", log_level=args.log_level or "INFO")

    config = None
    if args.config is not None:
        try:
            config = load_config(Path(args.config))
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    log_level = args.log_level or (config.global_config.log_level if config else "INFO")
    log_file = None
    if config is not None and config.global_config.log_file is not None:
        log_file = Path(config.global_config.log_file)
    logger = get_logger(f"dnprelease.cli.{command_name}", log_level=log_level)
    configure_package_logging(log_level, log_file)

    return SUCCESS, config, logger


def _pipeline_options(args: argparse.Namespace, config: Optional[DnpReleaseConfig]) -> PipelineOptions:
    """Flags win over the config file, the config file wins over defaults."""
    release = config.release if config is not None else ReleaseConfig()
    upload_to = args.upload_to or release.upload_to
    ipfs_provider = release.ipfs_provider
    swarm_provider = release.swarm_provider
    if args.provider:
        if upload_to == "swarm":
            swarm_provider = args.provider
        else:
            ipfs_provider = args.provider

    build_dir = args.build_dir or release.build_dir
    return PipelineOptions(
        dir=Path(args.dir),
        build_dir=Path(build_dir) if build_dir else None,
        upload_to=upload_to,
        ipfs_provider=ipfs_provider,
        swarm_provider=swarm_provider,
        timeout=args.timeout or release.timeout,
        skip_save=release.skip_save if args.skip_save is None else args.skip_save,
        skip_upload=release.skip_upload if args.skip_upload is None else args.skip_upload,
        cache_dir=Path(release.cache.directory) if release.cache.directory else None,
        cache_max_entries=release.cache.max_entries,
        cache_max_age_days=release.cache.max_age_days,
        docker_bin=release.docker_bin,
    )


def handle_build(args: argparse.Namespace) -> int:
    """Run the full build & upload pipeline for a package directory."""
    exit_code, config, logger = _load_config_and_logger(args, "build")
    if exit_code != SUCCESS:
        return exit_code

    try:
        options = _pipeline_options(args, config)
        logger.info(
            "Starting build",
            extra={
                "dir": str(options.dir),
                "upload_to": options.upload_to,
                "timeout": options.timeout,
                "skip_upload": options.skip_upload,
            },
        )
        context = run_build_and_upload(options)

    except ConfigurationError as err:
        logger.error("Invalid package configuration", extra={"error": str(err)})
        return CONFIG_ERROR
    except ValidationError as err:
        logger.error("Validation failed", extra={"error": str(err), "problems": err.problems})
        return VALIDATION_ERROR
    except BuildTimeoutError as err:
        logger.error(
            "Build timed out, re-run to resume",
            extra={"architecture": err.architecture, "elapsed_seconds": round(err.elapsed_seconds, 1)},
        )
        return RUNTIME_ERROR
    except BuildError as err:
        logger.error(
            "Build failed, re-run to resume",
            extra={"architecture": err.architecture, "error": str(err)},
        )
        return RUNTIME_ERROR
    except UploadError as err:
        logger.error(
            "Upload failed, build directory kept for retry",
            extra={"backend": err.backend, "error": str(err)},
        )
        return RUNTIME_ERROR
    except Exception as err:
        logger.error("Build failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR

    logger.info(
        "Build complete",
        extra={
            "build_dir": str(context.build_dir),
            "release_hash": context.release_multi_hash,
            "archives": [archive.path.name for archive in context.archives],
        },
    )
    return SUCCESS


def handle_records(args: argparse.Namespace) -> int:
    """Log the release record (version -> content address) of a package directory."""
    exit_code, _config, logger = _load_config_and_logger(args, "records")
    if exit_code != SUCCESS:
        return exit_code

    try:
        records = read_release_records(Path(args.dir))
    except ConfigurationError as err:
        logger.error("Unreadable release record", extra={"error": str(err)})
        return CONFIG_ERROR

    logger.info("Release records", extra={"dir": args.dir, "records": records})
    return SUCCESS
