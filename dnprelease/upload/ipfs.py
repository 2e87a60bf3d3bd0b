# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
IPFS backend: one recursive `add` through the node's HTTP API.

The request body is a multipart stream generated on the fly. Every directory
becomes an `application/x-directory` part and every file an
`application/octet-stream` part, all named relative to the build directory's
parent. That way the root entry in the response is the build directory
itself. Archives are read in chunks, so a multi-gigabyte release never sits in
memory.

With `progress=true` the node interleaves `{"Name", "Bytes"}` events into
the NDJSON response. Those are per-file running totals; summed and divided by
the tree size they give the overall fraction.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Callable, Iterator
from urllib.parse import quote

import requests

from dnprelease.errors import UploadError
from dnprelease.logging.logger import get_logger
from dnprelease.upload.base import CONNECT_TIMEOUT_SECONDS, ContentStore, list_tree

_logger: logging.Logger = get_logger(__name__)

_READ_CHUNK_SIZE = 256 * 1024


def _part_header(boundary: str, filename: str, content_type: str) -> bytes:
    return (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="file"; filename="{quote(filename, safe="")}"\r\n'
        f"Content-Type: {content_type}\r\n\r\n"
    ).encode("utf-8")


def multipart_body(directory: Path, boundary: str) -> Iterator[bytes]:
    """Stream `directory` as a multipart/form-data body for /api/v0/add."""
    root = directory.name
    yield _part_header(boundary, root, "application/x-directory")
    yield b"\r\n"

    for path in list_tree(directory):
        name = "/".join((root, *path.relative_to(directory).parts))
        if path.is_dir():
            yield _part_header(boundary, name, "application/x-directory")
        else:
            yield _part_header(boundary, name, "application/octet-stream")
            with open(path, "rb") as f:
                while True:
                    chunk = f.read(_READ_CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
        yield b"\r\n"

    yield f"--{boundary}--\r\n".encode("utf-8")


class IpfsUploader(ContentStore):
    backend = "ipfs"

    def add_directory(self, directory: Path, on_progress: Callable[[float], None]) -> str:
        total_bytes = sum(p.stat().st_size for p in list_tree(directory) if p.is_file())
        boundary = uuid.uuid4().hex
        url = f"{self.provider}/api/v0/add"
        params = {
            "pin": "true",
            "progress": "true",
            "cid-version": "0",
            "quieter": "false",
        }

        _logger.info(
            "Uploading to IPFS",
            extra={"url": url, "directory": str(directory), "total_bytes": total_bytes},
        )

        try:
            response = self._session.post(
                url,
                params=params,
                data=multipart_body(directory, boundary),
                headers={"Content-Type": f"multipart/form-data; boundary={boundary}"},
                stream=True,
                timeout=(CONNECT_TIMEOUT_SECONDS, None),
            )
        except requests.RequestException as err:
            raise UploadError(self.backend, f"cannot reach {url}: {err}") from err

        with response:
            if response.status_code >= 400:
                raise UploadError(
                    self.backend, f"HTTP {response.status_code} from {url}: {response.text[:500]}"
                )
            root_hash = self._read_events(response, directory.name, total_bytes, on_progress)

        if root_hash is None:
            raise UploadError(self.backend, f"no root hash for '{directory.name}' in response")

        on_progress(1.0)
        return f"/ipfs/{root_hash}"

    def _read_events(
        self,
        response: requests.Response,
        root_name: str,
        total_bytes: int,
        on_progress: Callable[[float], None],
    ) -> str | None:
        bytes_by_name: dict[str, int] = {}
        root_hash = None

        try:
            for line in response.iter_lines():
                if not line:
                    continue
                event = json.loads(line)
                if event.get("Type") == "error" or ("Message" in event and "Hash" not in event):
                    raise UploadError(self.backend, str(event.get("Message", event)))
                if "Hash" in event:
                    if event.get("Name") == root_name:
                        root_hash = str(event["Hash"])
                    continue
                if "Bytes" in event and total_bytes > 0:
                    bytes_by_name[str(event.get("Name", ""))] = int(event["Bytes"])
                    on_progress(sum(bytes_by_name.values()) / total_bytes)
        except requests.RequestException as err:
            raise UploadError(self.backend, f"connection lost while uploading: {err}") from err
        except json.JSONDecodeError as err:
            raise UploadError(self.backend, f"unreadable response from node: {err}") from err

        return root_hash
