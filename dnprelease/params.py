# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release file definitions and deterministic naming.

A package directory is identified by the files in it: a manifest, a compose
file, an avatar, and a handful of optional assets. Each one is matched by a
filename pattern and copied into the build directory under a fixed default
name, so consumers never have to guess.

Image archive names are derived only from {name, version, architecture}. The
filename alone tells you which architecture an archive holds, which is what
makes resuming a partial build safe.
"""

import re
from dataclasses import dataclass

UPSTREAM_VERSION_VARNAME = "UPSTREAM_VERSION"

UPSTREAM_IMAGE_LABEL = "dappnode.dnp.upstreamImage"

DEFAULT_ARCHITECTURE = "linux/amd64"

SUPPORTED_ARCHITECTURES: tuple[str, ...] = ("linux/amd64", "linux/arm64")

RELEASE_RECORD_FILENAME = "releases.json"


@dataclass(frozen=True)
class ReleaseFile:
    """One kind of file that may live in a package directory."""

    id: str
    regex: re.Pattern[str]
    default_name: str
    required: bool


MANIFEST = ReleaseFile(
    id="manifest",
    regex=re.compile(r"dappnode_package.*\.json$"),
    default_name="dappnode_package.json",
    required=True,
)
COMPOSE = ReleaseFile(
    id="compose",
    regex=re.compile(r"compose.*\.yml$"),
    default_name="docker-compose.yml",
    required=True,
)
AVATAR = ReleaseFile(
    id="avatar",
    regex=re.compile(r"avatar.*\.png$"),
    default_name="avatar.png",
    required=True,
)
SETUP_WIZARD = ReleaseFile(
    id="setupWizard",
    regex=re.compile(r"setup-wizard\..*(json|yaml|yml)$"),
    default_name="setup-wizard.json",
    required=False,
)
SETUP_SCHEMA = ReleaseFile(
    id="setupSchema",
    regex=re.compile(r"setup\..*\.json$"),
    default_name="setup.schema.json",
    required=False,
)
SETUP_TARGET = ReleaseFile(
    id="setupTarget",
    regex=re.compile(r"setup-target\..*json$"),
    default_name="setup-target.json",
    required=False,
)
SETUP_UI_JSON = ReleaseFile(
    id="setupUiJson",
    regex=re.compile(r"setup-ui\..*json$"),
    default_name="setup-ui.json",
    required=False,
)
DISCLAIMER = ReleaseFile(
    id="disclaimer",
    regex=re.compile(r"disclaimer\.md$", re.IGNORECASE),
    default_name="disclaimer.md",
    required=False,
)
GETTING_STARTED = ReleaseFile(
    id="gettingStarted",
    regex=re.compile(r"getting.*started\.md$", re.IGNORECASE),
    default_name="getting-started.md",
    required=False,
)

# Copied into the build directory when present, in this order.
OPTIONAL_RELEASE_FILES: tuple[ReleaseFile, ...] = (
    SETUP_WIZARD,
    SETUP_SCHEMA,
    SETUP_TARGET,
    SETUP_UI_JSON,
    DISCLAIMER,
    GETTING_STARTED,
)


def get_arch_tag(architecture: str) -> str:
    """linux/arm64 -> linux-arm64"""
    return architecture.replace("/", "-")


def get_image_path(name: str, version: str, architecture: str) -> str:
    """Archive filename for one architecture, e.g. foo_1.0.0_linux-amd64.txz"""
    return f"{name}_{version}_{get_arch_tag(architecture)}.txz"


def get_legacy_image_path(name: str, version: str) -> str:
    """
    Archive filename understood by consumers that predate multi-arch
    releases. Those consumers expect a single amd64 image.
    """
    return f"{name}_{version}.tar.xz"


def get_container_domain(dnp_name: str, service_name: str) -> str:
    """
    Unique domain per container, so multi-service packages don't collide.

    The main service (same name as the package, or unnamed) gets the package
    name itself; every other service is prefixed: `db.foo.dnp.dappnode.eth`.
    """
    if not service_name or service_name == dnp_name:
        return dnp_name
    return f"{service_name}.{dnp_name}"


def get_image_tag(dnp_name: str, service_name: str, version: str) -> str:
    return f"{get_container_domain(dnp_name, service_name)}:{version}"
