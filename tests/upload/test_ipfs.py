# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the IPFS backend against a fake HTTP session.
"""

import json
from pathlib import Path

import pytest
import requests

from dnprelease.errors import UploadError
from dnprelease.upload.ipfs import IpfsUploader, multipart_body

ROOT_HASH = "QmNqDvqAyy3pN3PvymB6chM7S1FgYyive8LosVKUuaDdfd"


def _build_dir(tmp_path: Path) -> Path:
    build_dir = tmp_path / "build_1.0.0"
    build_dir.mkdir()
    (build_dir / "dappnode_package.json").write_text('{"name": "foo"}', encoding="utf-8")
    (build_dir / "foo_1.0.0.tar.xz").write_bytes(b"\x00" * 300)
    return build_dir


def _events(*events: dict) -> list[bytes]:
    return [json.dumps(event).encode("utf-8") for event in events]


class TestMultipartBody:
    def test_parts_are_named_under_root(self, tmp_path: Path) -> None:
        body = b"".join(multipart_body(_build_dir(tmp_path), "BOUNDARY"))

        assert b'filename="build_1.0.0"' in body
        assert b'filename="build_1.0.0%2Fdappnode_package.json"' in body
        assert b"Content-Type: application/x-directory" in body
        assert body.endswith(b"--BOUNDARY--\r\n")

    def test_file_bytes_are_included(self, tmp_path: Path) -> None:
        body = b"".join(multipart_body(_build_dir(tmp_path), "B"))
        assert b'{"name": "foo"}' in body
        assert b"\x00" * 300 in body


class TestIpfsUploader:
    def test_returns_root_hash(self, tmp_path: Path, make_session) -> None:  # type: ignore[no-untyped-def]
        session = make_session(
            lines=_events(
                {"Name": "build_1.0.0/foo_1.0.0.tar.xz", "Bytes": 150},
                {"Name": "build_1.0.0/foo_1.0.0.tar.xz", "Bytes": 300},
                {"Name": "build_1.0.0/foo_1.0.0.tar.xz", "Hash": "QmFile"},
                {"Name": "build_1.0.0", "Hash": ROOT_HASH},
            )
        )
        progress: list[float] = []
        uploader = IpfsUploader("http://ipfs.local:5001/", session=session)

        result = uploader.add_directory(_build_dir(tmp_path), progress.append)

        assert result == f"/ipfs/{ROOT_HASH}"
        assert progress[-1] == 1.0
        assert progress[0] == pytest.approx(150 / 315)

    def test_request_shape(self, tmp_path: Path, make_session) -> None:  # type: ignore[no-untyped-def]
        session = make_session(lines=_events({"Name": "build_1.0.0", "Hash": ROOT_HASH}))
        IpfsUploader("http://ipfs.local:5001", session=session).add_directory(
            _build_dir(tmp_path), lambda _: None
        )

        request = session.requests[0]
        assert request["url"] == "http://ipfs.local:5001/api/v0/add"
        assert request["params"]["pin"] == "true"
        assert request["stream"] is True
        assert request["headers"]["Content-Type"].startswith("multipart/form-data; boundary=")
        assert session.response.closed

    def test_http_error(self, tmp_path: Path, make_session) -> None:  # type: ignore[no-untyped-def]
        session = make_session(status_code=500, text="internal error")
        with pytest.raises(UploadError, match="HTTP 500") as exc_info:
            IpfsUploader("http://ipfs.local:5001", session=session).add_directory(
                _build_dir(tmp_path), lambda _: None
            )
        assert exc_info.value.backend == "ipfs"

    def test_error_event(self, tmp_path: Path, make_session) -> None:  # type: ignore[no-untyped-def]
        session = make_session(lines=_events({"Message": "disk full", "Code": 0, "Type": "error"}))
        with pytest.raises(UploadError, match="disk full"):
            IpfsUploader("http://ipfs.local:5001", session=session).add_directory(
                _build_dir(tmp_path), lambda _: None
            )

    def test_missing_root_hash(self, tmp_path: Path, make_session) -> None:  # type: ignore[no-untyped-def]
        session = make_session(lines=_events({"Name": "build_1.0.0/foo_1.0.0.tar.xz", "Hash": "QmFile"}))
        with pytest.raises(UploadError, match="no root hash"):
            IpfsUploader("http://ipfs.local:5001", session=session).add_directory(
                _build_dir(tmp_path), lambda _: None
            )

    def test_unreachable_node(self, tmp_path: Path, make_session) -> None:  # type: ignore[no-untyped-def]
        session = make_session(error=requests.ConnectionError("refused"))
        with pytest.raises(UploadError, match="cannot reach"):
            IpfsUploader("http://ipfs.local:5001", session=session).add_directory(
                _build_dir(tmp_path), lambda _: None
            )
