# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for dnprelease.

Usage:
    dnprelease build --dir ./my-package
    dnprelease build --upload-to swarm --provider public --timeout "1h 30m"
    dnprelease build --skip-upload --log-level DEBUG
    dnprelease records --dir ./my-package

Global options (--config, --log-level) are shared by every subcommand through
argparse's parent parser mechanism.
"""

import argparse
import sys

from dnprelease.cli.commands import handle_build, handle_records
from dnprelease.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """Parent parser with the options every subcommand accepts."""
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level (overrides the config file).",
    )
    parent.add_argument(
        "--dir",
        type=str,
        default=".",
        help="Package directory containing the manifest and compose file.",
    )
    return parent


def _add_build_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--build-dir",
        type=str,
        default=None,
        dest="build_dir",
        help="Build directory (default: build_<version> inside --dir).",
    )
    parser.add_argument(
        "--upload-to",
        type=str,
        default=None,
        dest="upload_to",
        choices=["ipfs", "swarm"],
        help="Where to upload the release.",
    )
    parser.add_argument(
        "--provider",
        type=str,
        default=None,
        help="Content provider URL or alias for the selected backend.",
    )
    parser.add_argument(
        "--timeout",
        type=str,
        default=None,
        help='Per-architecture build timeout: "15h", "20min 15s", "5000" (ms).',
    )
    parser.add_argument(
        "--skip-save",
        action="store_true",
        default=None,
        dest="skip_save",
        help="Build images but don't save the archives.",
    )
    parser.add_argument(
        "--skip-upload",
        action="store_true",
        default=None,
        dest="skip_upload",
        help="Stop after building; don't upload or record anything.",
    )


def build_parser() -> argparse.ArgumentParser:
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="dnprelease",
        description="dnprelease: build, pack and upload package releases.",
    )
    subparsers = root_parser.add_subparsers(dest="command")

    build_parser_ = subparsers.add_parser(
        "build", parents=[parent], help="Build image archives and upload the release."
    )
    _add_build_arguments(build_parser_)
    build_parser_.set_defaults(func=handle_build)

    records_parser = subparsers.add_parser(
        "records", parents=[parent], help="Show the release record of a package."
    )
    records_parser.set_defaults(func=handle_records)

    return root_parser


def main() -> None:
    """Parse the command line, run the chosen subcommand, exit with its code."""
    root_parser = build_parser()
    args = root_parser.parse_args()

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
