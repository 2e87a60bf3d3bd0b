# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for descriptor normalization.

Normalization only reads. Every rejection must happen before anything in the
package directory changes.
"""

from pathlib import Path
from typing import Callable

import pytest

from conftest import default_compose, default_manifest, write_avatar
from dnprelease.descriptors.architectures import MultiArch, SingleArch
from dnprelease.errors import ConfigurationError, ValidationError
from dnprelease.params import UPSTREAM_IMAGE_LABEL
from dnprelease.release.normalizer import NormalizeInput, normalize_descriptors


def _snapshot(directory: Path) -> dict[str, bytes]:
    return {p.name: p.read_bytes() for p in sorted(directory.iterdir()) if p.is_file()}


class TestNormalize:
    def test_derives_release(self, package_dir: Path) -> None:
        release = normalize_descriptors(NormalizeInput(package_dir))

        assert release.name == "foo.dnp.dappnode.eth"
        assert release.version == "1.0.0"
        assert release.target == MultiArch(("linux/amd64", "linux/arm64"))
        assert release.compose_path == package_dir / "docker-compose.yml"
        assert release.avatar_path == package_dir / "avatar.png"
        assert [image.external for image in release.images] == [False, True]

    def test_compose_variants(self, package_dir: Path) -> None:
        release = normalize_descriptors(NormalizeInput(package_dir))

        assert release.compose_for_build["services"]["db"]["image"] == "postgres:15"
        db = release.compose_for_release["services"]["db"]
        assert db["image"] == "db.foo.dnp.dappnode.eth:1.0.0"
        assert db["labels"][UPSTREAM_IMAGE_LABEL] == "postgres:15"

    def test_upstream_version_from_compose_wins(self, package_dir: Path) -> None:
        release = normalize_descriptors(NormalizeInput(package_dir, env_upstream_version="9.9.9"))
        assert release.manifest["upstreamVersion"] == "2.1.0"

    def test_upstream_version_from_environment(self, make_package: Callable[..., Path]) -> None:
        compose = default_compose()
        del compose["services"]["foo.dnp.dappnode.eth"]["build"]["args"]
        release = normalize_descriptors(
            NormalizeInput(make_package(compose=compose), env_upstream_version="9.9.9")
        )
        assert release.manifest["upstreamVersion"] == "9.9.9"

    def test_no_architectures_is_single_arch(self, make_package: Callable[..., Path]) -> None:
        manifest = default_manifest()
        del manifest["architectures"]
        release = normalize_descriptors(NormalizeInput(make_package(manifest=manifest)))
        assert isinstance(release.target, SingleArch)

    def test_does_not_touch_package_dir(self, package_dir: Path) -> None:
        before = _snapshot(package_dir)
        normalize_descriptors(NormalizeInput(package_dir))
        assert _snapshot(package_dir) == before


class TestRejections:
    @pytest.mark.parametrize(
        "field, value",
        [
            ("image", {"path": "foo.tar.xz"}),
            ("image", {}),
            ("avatar", "/ipfs/QmAvatar"),
            ("avatar", ""),
        ],
    )
    def test_legacy_fields(self, make_package: Callable[..., Path], field: str, value: object) -> None:
        manifest = default_manifest()
        manifest[field] = value
        with pytest.raises(ConfigurationError, match=field):
            normalize_descriptors(NormalizeInput(make_package(manifest=manifest)))

    def test_service_without_build_or_image(self, make_package: Callable[..., Path]) -> None:
        compose = default_compose()
        compose["services"]["worker"] = {"restart": "always"}
        with pytest.raises(ConfigurationError, match="neither 'build' nor 'image'"):
            normalize_descriptors(NormalizeInput(make_package(compose=compose)))

    def test_uppercase_name(self, make_package: Callable[..., Path]) -> None:
        manifest = default_manifest()
        manifest["name"] = "Foo.dnp.dappnode.eth"
        with pytest.raises(ConfigurationError, match="lowercase"):
            normalize_descriptors(NormalizeInput(make_package(manifest=manifest)))

    def test_arm_only_package(self, make_package: Callable[..., Path]) -> None:
        manifest = default_manifest()
        manifest["architectures"] = ["linux/arm64"]
        with pytest.raises(ConfigurationError, match="linux/amd64"):
            normalize_descriptors(NormalizeInput(make_package(manifest=manifest)))

    def test_schema_violation(self, make_package: Callable[..., Path]) -> None:
        manifest = default_manifest()
        manifest["version"] = "one"
        with pytest.raises(ValidationError):
            normalize_descriptors(NormalizeInput(make_package(manifest=manifest)))

    def test_missing_avatar(self, make_package: Callable[..., Path]) -> None:
        with pytest.raises(ConfigurationError, match="avatar"):
            normalize_descriptors(NormalizeInput(make_package(avatar=False)))

    def test_bad_avatar(self, make_package: Callable[..., Path]) -> None:
        package_dir = make_package(avatar=False)
        write_avatar(package_dir / "avatar.png", size=(300, 120))
        with pytest.raises(ValidationError, match="square"):
            normalize_descriptors(NormalizeInput(package_dir))
