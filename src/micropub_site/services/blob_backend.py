"""Content-addressed blob backends used by the media store.

A backend stores opaque bytes under the hex digest the media store computed
for them. Two implementations are provided: a local directory tree and an
external blob service spoken to over HTTP.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol

import httpx

from micropub_site.core.errors import NotFoundError, StoreError
from micropub_site.core.settings import Settings

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_NOT_FOUND = 404

_DIGEST_RE = re.compile(r"^[0-9a-f]{16,128}$")


def validate_digest(hex_digest: str) -> str:
    """Return ``hex_digest`` if it is a lower-case hex string, else raise ``NotFoundError``."""
    if not _DIGEST_RE.match(hex_digest):
        raise NotFoundError(f"No media for '{hex_digest}'")
    return hex_digest


class BlobBackend(Protocol):
    """Storage contract the media store relies on."""

    def put(self, hex_digest: str, data: bytes) -> None: ...

    def get(self, hex_digest: str) -> bytes: ...

    def exists(self, hex_digest: str) -> bool: ...


class FilesystemBlobBackend:
    """Stores blobs as files under ``root/<first two hex chars>/<digest>``."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)

    def _path(self, hex_digest: str) -> Path:
        validate_digest(hex_digest)
        return self.root / hex_digest[:2] / hex_digest

    def exists(self, hex_digest: str) -> bool:
        return self._path(hex_digest).is_file()

    def put(self, hex_digest: str, data: bytes) -> None:
        """Write ``data`` unless a blob with this digest is already present."""
        path = self._path(hex_digest)
        if path.is_file():
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error("Failed to write blob %s: %s", hex_digest, exc)
            raise StoreError("Could not write blob") from exc

    def get(self, hex_digest: str) -> bytes:
        path = self._path(hex_digest)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise NotFoundError(f"No media for '{hex_digest}'") from exc
        except OSError as exc:
            logger.error("Failed to read blob %s: %s", hex_digest, exc)
            raise StoreError("Could not read blob") from exc


class HttpBlobBackend:
    """Client for an external content-addressed blob service.

    The service accepts ``PUT {base}/`` with the raw bytes and answers with the
    hex digest it stored them under; blobs are read back with
    ``GET {base}/{digest}``.
    """

    def __init__(
        self,
        base_uri: str,
        timeout_seconds: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_uri = base_uri.rstrip("/")
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))

    def close(self) -> None:
        self._client.close()

    def exists(self, hex_digest: str) -> bool:
        validate_digest(hex_digest)
        try:
            response = self._client.head(f"{self.base_uri}/{hex_digest}")
        except httpx.HTTPError as exc:
            logger.error("Blob service HEAD failed for %s: %s", hex_digest, exc)
            raise StoreError("Blob service unavailable") from exc
        return response.status_code == HTTP_OK

    def put(self, hex_digest: str, data: bytes) -> None:
        validate_digest(hex_digest)
        try:
            response = self._client.put(f"{self.base_uri}/", content=data)
        except httpx.HTTPError as exc:
            logger.error("Blob service PUT failed for %s: %s", hex_digest, exc)
            raise StoreError("Blob service unavailable") from exc
        if response.status_code not in (HTTP_OK, HTTP_CREATED):
            logger.error(
                "Unsuccessful response status from blob service: %s", response.status_code
            )
            raise StoreError("Blob service rejected upload")
        stored_as = response.text.strip()
        if stored_as != hex_digest:
            logger.error("Blob service stored %s under unexpected key %s", hex_digest, stored_as)
            raise StoreError("Blob service digest mismatch")

    def get(self, hex_digest: str) -> bytes:
        validate_digest(hex_digest)
        try:
            response = self._client.get(f"{self.base_uri}/{hex_digest}")
        except httpx.HTTPError as exc:
            logger.error("Blob service GET failed for %s: %s", hex_digest, exc)
            raise StoreError("Blob service unavailable") from exc
        if response.status_code == HTTP_NOT_FOUND:
            raise NotFoundError(f"No media for '{hex_digest}'")
        if response.status_code != HTTP_OK:
            raise StoreError(f"Blob service returned {response.status_code}")
        return response.content


def build_blob_backend(config: Settings) -> BlobBackend:
    """Return the backend selected by ``BLOB_BACKEND``."""
    if config.blob_backend == "http":
        return HttpBlobBackend(config.blob_store_base_uri, config.blob_http_timeout_seconds)
    if config.blob_backend == "filesystem":
        return FilesystemBlobBackend(config.blob_store_path)
    raise ValueError(f"Unknown blob backend '{config.blob_backend}'")
