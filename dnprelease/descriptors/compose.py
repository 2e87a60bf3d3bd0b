# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Composition descriptor (docker-compose.yml) helpers.

The pipeline only touches a few parts of the compose document: each service's
`image`, its `build` section and its `labels`. Everything else is carried
through as-is.

Two variants are derived from the developer's compose file and neither
mutates it:
  - build variant: every service that is built locally gets the package's
    deterministic image tag, so `docker compose build` produces images with
    the names the archive step expects.
  - release variant: same, plus external (pulled) images are rewritten to the
    package's own tag. The original reference is kept in a label so it stays
    traceable. Consumers then load every image from the archive instead of
    pulling from a third-party registry.
"""

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from dnprelease.descriptors.assets import get_asset_path_required
from dnprelease.errors import ConfigurationError
from dnprelease.logging.logger import get_logger
from dnprelease.params import (
    COMPOSE,
    UPSTREAM_IMAGE_LABEL,
    UPSTREAM_VERSION_VARNAME,
    get_image_tag,
)
from dnprelease.utils.filesystem import atomic_write

_logger: logging.Logger = get_logger(__name__)

Compose = dict[str, Any]


@dataclass(frozen=True)
class PackageImage:
    """
    One image that ends up inside the package archive.

    Local images are built from the package sources. External images are
    pulled from `original_image_tag` and re-tagged to `image_tag`.
    """

    service_name: str
    image_tag: str
    external: bool
    original_image_tag: Optional[str] = None


def get_compose_path(directory: Path) -> Path:
    return get_asset_path_required(COMPOSE, directory)


def read_compose(directory: Path) -> Compose:
    """
    Load and shape-check the compose file of a package directory.

    Raises:
        ConfigurationError: Missing file, invalid YAML, no services, or a
            service with neither `build` nor `image`.
    """
    path = get_compose_path(directory)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as err:
        raise ConfigurationError(f"Invalid YAML in compose file {path}: {err}") from err

    if not isinstance(data, dict):
        raise ConfigurationError(f"Compose file {path} must contain a YAML mapping")
    services = data.get("services")
    if not isinstance(services, dict) or not services:
        raise ConfigurationError(f"Compose file {path} declares no services")
    for service_name, service in services.items():
        if not isinstance(service, dict):
            raise ConfigurationError(
                f"Service '{service_name}' in {path} must be a mapping"
            )
        if not service.get("build") and not service.get("image"):
            raise ConfigurationError(
                f"Service '{service_name}' in {path} has neither 'build' nor 'image'"
            )
    return data


def write_compose(path: Path, compose: Compose) -> Path:
    """
    Write `compose` to `path`, preserving key order.

    Pass a directory to write it under the default docker-compose.yml name.
    """
    if path.is_dir():
        path = path / COMPOSE.default_name
    content = yaml.safe_dump(compose, sort_keys=False, default_flow_style=False)
    atomic_write(path, content)
    _logger.debug("Compose written", extra={"path": str(path)})
    return path


def _build_args(service: dict[str, Any]) -> dict[str, str]:
    build = service.get("build")
    if not isinstance(build, dict):
        return {}
    args = build.get("args") or {}
    if isinstance(args, list):
        parsed: dict[str, str] = {}
        for item in args:
            key, _, value = str(item).partition("=")
            parsed[key] = value
        return parsed
    return {str(k): "" if v is None else str(v) for k, v in args.items()}


def _labels_as_dict(labels: Any) -> dict[str, str]:
    if not labels:
        return {}
    if isinstance(labels, list):
        parsed: dict[str, str] = {}
        for item in labels:
            key, _, value = str(item).partition("=")
            parsed[key] = value
        return parsed
    return {str(k): str(v) for k, v in labels.items()}


def parse_compose_upstream_version(compose: Compose) -> Optional[str]:
    """
    Collect the UPSTREAM_VERSION build arg of every service.

    Multi-service packages can wrap several upstream projects; their versions
    are joined as "1.2.0, 0.9.1". Returns None when no service declares one.
    """
    versions: list[str] = []
    for service in compose["services"].values():
        value = _build_args(service).get(UPSTREAM_VERSION_VARNAME)
        if value:
            versions.append(value)
    return ", ".join(versions) if versions else None


def update_compose_image_tags(
    compose: Compose,
    manifest: dict[str, Any],
    edit_external_images: bool = False,
) -> Compose:
    """
    Return a copy of `compose` with deterministic image tags.

    Services with a `build` section always get the package tag. Services that
    only reference an external image keep it unless `edit_external_images` is
    set, in which case they are pointed at the package tag and the upstream
    reference is recorded under the upstream image label.
    """
    name = manifest["name"]
    version = manifest["version"]
    updated = copy.deepcopy(compose)

    for service_name, service in updated["services"].items():
        new_tag = get_image_tag(name, service_name, version)
        if service.get("build"):
            service["image"] = new_tag
        elif edit_external_images:
            labels = _labels_as_dict(service.get("labels"))
            labels[UPSTREAM_IMAGE_LABEL] = service["image"]
            service["labels"] = labels
            service["image"] = new_tag

    return updated


def get_compose_package_images(compose: Compose, manifest: dict[str, Any]) -> list[PackageImage]:
    """
    List every image the package archive must contain, in service order.

    Raises:
        ConfigurationError: A service has neither `build` nor `image`.
    """
    name = manifest["name"]
    version = manifest["version"]
    images: list[PackageImage] = []

    for service_name, service in compose["services"].items():
        image_tag = get_image_tag(name, service_name, version)
        if service.get("build"):
            images.append(PackageImage(service_name, image_tag, external=False))
        elif service.get("image"):
            images.append(
                PackageImage(
                    service_name,
                    image_tag,
                    external=True,
                    original_image_tag=str(service["image"]),
                )
            )
        else:
            raise ConfigurationError(
                f"Service '{service_name}' has neither 'build' nor 'image'"
            )

    return images


def get_service_build(compose: Compose, service_name: str, compose_dir: Path) -> tuple[Path, Optional[str], dict[str, str]]:
    """
    Resolve a service's build section into (context, dockerfile, build args).

    `build: ./src` and `build: {context: ./src, dockerfile: Dockerfile.prod}`
    are both accepted; relative contexts are resolved against the compose
    file's directory.
    """
    service = compose["services"][service_name]
    build = service.get("build")
    if isinstance(build, str):
        return (compose_dir / build).resolve(), None, {}
    if isinstance(build, dict):
        context = compose_dir / str(build.get("context", "."))
        dockerfile = build.get("dockerfile")
        return context.resolve(), str(dockerfile) if dockerfile else None, _build_args(service)
    raise ConfigurationError(f"Service '{service_name}' has no build section")
