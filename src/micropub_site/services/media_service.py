"""Content-addressable media storage."""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from micropub_site.core.errors import NotFoundError, PayloadTooLargeError, StoreError
from micropub_site.core.settings import Settings, settings
from micropub_site.db.time import to_text, utcnow
from micropub_site.models import Media
from micropub_site.services.blob_backend import BlobBackend, build_blob_backend, validate_digest
from micropub_site.services.sanitize import guess_format, sanitize_image

logger = logging.getLogger(__name__)


def content_digest(data: bytes) -> str:
    """Return the hex SHA-256 digest used as a blob's key."""
    return hashlib.sha256(data).hexdigest()


class _DigestLocks:
    """One lock per digest, created on demand and dropped when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, hex_digest: str) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(hex_digest, (threading.Lock(), 0))
            self._locks[hex_digest] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                lock, users = self._locks[hex_digest]
                if users <= 1:
                    del self._locks[hex_digest]
                else:
                    self._locks[hex_digest] = (lock, users - 1)


class MediaStore:
    """Stores uploads once per content hash and records how they were uploaded.

    Args:
        backend: Blob backend keyed by hex digest.
        max_upload_bytes: Uploads larger than this are rejected before any work.
        sanitize_timeout_seconds: Upper bound on image metadata stripping.
    """

    def __init__(
        self,
        backend: BlobBackend,
        max_upload_bytes: int,
        sanitize_timeout_seconds: float = 15.0,
    ) -> None:
        self.backend = backend
        self.max_upload_bytes = max_upload_bytes
        self.sanitize_timeout_seconds = sanitize_timeout_seconds
        self._locks = _DigestLocks()

    def check_size(self, size: int) -> None:
        """Raise ``PayloadTooLargeError`` if ``size`` exceeds the configured bound."""
        if size > self.max_upload_bytes:
            raise PayloadTooLargeError(size, self.max_upload_bytes)

    def _write_blob(self, hex_digest: str, data: bytes) -> bool:
        with self._locks.hold(hex_digest):
            if self.backend.exists(hex_digest):
                return False
            self.backend.put(hex_digest, data)
            return True

    def store_media(
        self,
        session: Session,
        data: bytes,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> Media:
        """Store an upload and return its metadata record.

        Recognised images are stripped of embedded metadata first; the digest
        is computed over the bytes actually stored. A record with the same
        digest, filename and content type is reused rather than duplicated.

        Raises:
            PayloadTooLargeError: If ``data`` exceeds the configured bound.
            StoreError: If the blob backend or the database fails.
        """
        self.check_size(len(data))

        image_format = guess_format(content_type, filename)
        if image_format is not None:
            data = sanitize_image(data, image_format, self.sanitize_timeout_seconds)

        hex_digest = content_digest(data)
        written = self._write_blob(hex_digest, data)
        logger.info(
            "Media %s %s (%d bytes)",
            hex_digest,
            "stored" if written else "already present",
            len(data),
        )

        now = to_text(utcnow())
        try:
            # Comparing with None renders as IS NULL.
            record = session.scalars(
                select(Media).where(
                    Media.hex_digest == hex_digest,
                    Media.filename == filename,
                    Media.content_type == content_type,
                )
            ).first()
            if record is None:
                record = Media(
                    hex_digest=hex_digest,
                    filename=filename,
                    content_type=content_type,
                    created_at=now,
                    updated_at=now,
                )
                session.add(record)
            else:
                record.updated_at = now
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Database error recording media %s: %s", hex_digest, exc)
            raise StoreError("Could not record media") from exc
        return record

    def get_record(self, session: Session, hex_digest: str) -> Media:
        """Return the most recent record for ``hex_digest`` or raise ``NotFoundError``."""
        validate_digest(hex_digest)
        record = session.scalars(
            select(Media).where(Media.hex_digest == hex_digest).order_by(Media.id.desc())
        ).first()
        if record is None:
            raise NotFoundError(f"No media for '{hex_digest}'")
        return record

    def fetch_media(self, hex_digest: str) -> bytes:
        """Return the stored bytes for ``hex_digest`` or raise ``NotFoundError``."""
        validate_digest(hex_digest)
        return self.backend.get(hex_digest)


_media_store: MediaStore | None = None
_media_store_lock = threading.Lock()


def build_media_store(config: Settings) -> MediaStore:
    """Create a media store from configuration."""
    return MediaStore(
        build_blob_backend(config),
        max_upload_bytes=config.media_max_upload_bytes,
        sanitize_timeout_seconds=config.media_sanitize_timeout_seconds,
    )


def get_media_store() -> MediaStore:
    """Return the process-wide media store, creating it on first use."""
    global _media_store
    with _media_store_lock:
        if _media_store is None:
            _media_store = build_media_store(settings)
        return _media_store
