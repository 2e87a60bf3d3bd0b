# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for dnprelease tests.

Fixtures here are available to every test file automatically. The fakes
replace the two things tests must never touch for real: the docker daemon and
a content-addressed store on the network.
"""

import hashlib
import json
import textwrap
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import pytest
import yaml
from PIL import Image

from dnprelease.build.docker import CommandFailed, CommandTimeout, Deadline
from dnprelease.upload.base import ContentStore

PACKAGE_NAME = "foo.dnp.dappnode.eth"
PACKAGE_VERSION = "1.0.0"


def default_manifest() -> dict[str, Any]:
    return {
        "name": PACKAGE_NAME,
        "version": PACKAGE_VERSION,
        "description": "Foo node",
        "type": "service",
        "license": "MIT",
        "architectures": ["linux/amd64", "linux/arm64"],
    }


def default_compose() -> dict[str, Any]:
    return {
        "version": "3.5",
        "services": {
            PACKAGE_NAME: {
                "build": {"context": ".", "args": {"UPSTREAM_VERSION": "2.1.0"}},
                "restart": "unless-stopped",
            },
            "db": {"image": "postgres:15"},
        },
    }


def write_avatar(path: Path, size: tuple[int, int] = (300, 300), image_format: str = "PNG") -> Path:
    Image.new("RGB", size, color=(32, 96, 160)).save(path, format=image_format)
    return path


@pytest.fixture()
def make_package(tmp_path: Path) -> Callable[..., Path]:
    """
    Factory for package directories.

    Pass `manifest` or `compose` to override the defaults, `avatar=False` to
    leave the avatar out, or `extra_files` to drop optional assets in.
    """

    def _make(
        manifest: Optional[dict[str, Any]] = None,
        compose: Optional[dict[str, Any]] = None,
        avatar: bool = True,
        extra_files: Optional[dict[str, str]] = None,
        dirname: str = "pkg",
    ) -> Path:
        package_dir = tmp_path / dirname
        package_dir.mkdir()
        (package_dir / "dappnode_package.json").write_text(
            json.dumps(manifest if manifest is not None else default_manifest(), indent=2),
            encoding="utf-8",
        )
        (package_dir / "docker-compose.yml").write_text(
            yaml.safe_dump(compose if compose is not None else default_compose(), sort_keys=False),
            encoding="utf-8",
        )
        (package_dir / "Dockerfile").write_text("FROM alpine:3.19\n", encoding="utf-8")
        if avatar:
            write_avatar(package_dir / "avatar.png")
        for filename, content in (extra_files or {}).items():
            (package_dir / filename).write_text(content, encoding="utf-8")
        return package_dir

    return _make


@pytest.fixture()
def package_dir(make_package: Callable[..., Path]) -> Path:
    """A valid multi-arch package with one built and one external service."""
    return make_package()


class FakeRunner:
    """
    Stands in for DockerRunner. Records every command and writes a small
    placeholder archive on save.

    Set `fail_on` or `timeout_on` to a substring of a command line to make
    matching commands fail.
    """

    def __init__(self) -> None:
        self.commands: list[list[str]] = []
        self.saved: list[Path] = []
        self.fail_on: Optional[str] = None
        self.timeout_on: Optional[str] = None

    def _check(self, command: list[str]) -> None:
        joined = " ".join(command)
        if self.timeout_on and self.timeout_on in joined:
            raise CommandTimeout(command, 1.5)
        if self.fail_on and self.fail_on in joined:
            raise CommandFailed(command, 1, "boom")

    def run(self, args: Sequence[str], deadline: Deadline, cwd: Optional[Path] = None) -> str:
        command = ["docker", *args]
        self.commands.append(command)
        self._check(command)
        return ""

    def save(self, image_tags: Sequence[str], dest: Path, deadline: Deadline) -> None:
        command = ["docker", "save", *image_tags]
        self.commands.append(command)
        self._check(command)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(f"archive:{dest.name}".encode("utf-8"))
        self.saved.append(dest)

    def commands_with(self, word: str) -> list[list[str]]:
        return [command for command in self.commands if word in command]


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


class FakeStore(ContentStore):
    """
    In-memory content store. The returned address is a digest of the uploaded
    tree, so identical build directories get identical addresses.
    """

    def __init__(self, backend: str, provider: str) -> None:
        super().__init__(provider)
        self.backend = backend
        self.uploads: list[list[str]] = []

    def add_directory(self, directory: Path, on_progress: Callable[[float], None]) -> str:
        hasher = hashlib.sha256()
        names = []
        for path in sorted(directory.iterdir()):
            names.append(path.name)
            hasher.update(path.name.encode("utf-8"))
            if path.is_file():
                hasher.update(path.read_bytes())
        self.uploads.append(names)
        on_progress(0.5)
        on_progress(1.0)
        prefix = "/bzz/" if self.backend == "swarm" else "/ipfs/Qm"
        return prefix + hasher.hexdigest()[:44]


class FakeStoreFactory:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.stores: list[FakeStore] = []

    def __call__(self, backend: str, provider: str) -> FakeStore:
        self.calls.append((backend, provider))
        store = FakeStore(backend, provider)
        self.stores.append(store)
        return store


@pytest.fixture()
def fake_store_factory() -> FakeStoreFactory:
    return FakeStoreFactory()


class FakeResponse:
    """Just enough of requests.Response for the uploaders."""

    def __init__(self, status_code: int = 200, lines: Sequence[bytes] = (), text: str = "") -> None:
        self.status_code = status_code
        self._lines = list(lines)
        self.text = text
        self.closed = False

    def iter_lines(self):  # type: ignore[no-untyped-def]
        yield from self._lines

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class FakeSession:
    """Records posted requests and drains the body the way a real adapter would."""

    def __init__(self, response: Optional[FakeResponse] = None, error: Optional[Exception] = None) -> None:
        self.response = response if response is not None else FakeResponse()
        self.error = error
        self.requests: list[dict[str, Any]] = []
        self.body = b""

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        if self.error is not None:
            raise self.error
        data = kwargs.get("data")
        if hasattr(data, "read"):
            chunks = []
            while True:
                chunk = data.read(64 * 1024)
                if not chunk:
                    break
                chunks.append(chunk)
            self.body = b"".join(chunks)
        elif data is not None:
            self.body = b"".join(data)
        self.requests.append({"url": url, **kwargs})
        return self.response


@pytest.fixture()
def make_session() -> Callable[..., FakeSession]:
    def _make(
        status_code: int = 200,
        lines: Sequence[bytes] = (),
        text: str = "",
        error: Optional[Exception] = None,
    ) -> FakeSession:
        return FakeSession(FakeResponse(status_code, lines, text), error)

    return _make


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """The smallest config file that passes schema validation."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "dnprelease.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """Valid YAML, but the required config_version is missing."""
    config_content = textwrap.dedent("""\
        global:
          log_level: "INFO"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
