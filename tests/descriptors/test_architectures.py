# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for build target selection.
"""

import pytest

from dnprelease.descriptors.architectures import (
    MultiArch,
    SingleArch,
    build_target_from_manifest,
    parse_architectures,
)
from dnprelease.errors import ConfigurationError


class TestParseArchitectures:
    def test_keeps_declaration_order(self) -> None:
        assert parse_architectures(["linux/arm64", "linux/amd64"]) == ("linux/arm64", "linux/amd64")

    def test_drops_duplicates(self) -> None:
        assert parse_architectures(["linux/amd64", "linux/amd64"]) == ("linux/amd64",)

    def test_rejects_unknown(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported"):
            parse_architectures(["linux/amd64", "linux/riscv64"])

    def test_requires_default_architecture(self) -> None:
        with pytest.raises(ConfigurationError, match="linux/amd64"):
            parse_architectures(["linux/arm64"])

    def test_rejects_string(self) -> None:
        with pytest.raises(ConfigurationError, match="list"):
            parse_architectures("linux/amd64")


class TestBuildTarget:
    def test_no_architectures_is_single_arch(self) -> None:
        target = build_target_from_manifest({"name": "foo", "version": "1.0.0"})

        assert isinstance(target, SingleArch)
        assert target.archive_names("foo", "1.0.0") == {"linux/amd64": "foo_1.0.0.tar.xz"}

    def test_declared_architectures_is_multi_arch(self) -> None:
        target = build_target_from_manifest(
            {"name": "foo", "version": "1.0.0", "architectures": ["linux/amd64", "linux/arm64"]}
        )

        assert isinstance(target, MultiArch)
        assert target.archive_names("foo", "1.0.0") == {
            "linux/amd64": "foo_1.0.0_linux-amd64.txz",
            "linux/arm64": "foo_1.0.0_linux-arm64.txz",
        }
