# tests/conftest.py
from __future__ import annotations

import io
import os
from collections.abc import Generator, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

from micropub_site.api.v1.dependencies import get_indieauth_client_dep, get_media_store_dep
from micropub_site.core.errors import AuthError, NotFoundError
from micropub_site.core.settings import Settings, settings
from micropub_site.db.session import Base
from micropub_site.db.session import get_db as app_get_session
from micropub_site.main import app as fastapi_app
from micropub_site.schemas.auth import TokenVerification
from micropub_site.services.media_service import MediaStore

TEST_DB_URL = "sqlite://"
TEST_TOKEN = "test-token"
TEST_CLIENT_ID = "https://client.example/"
TEST_MAX_UPLOAD_BYTES = 64 * 1024


class FakeIndieAuthClient:
    """Accepts only ``TEST_TOKEN`` and reports the configured site as its owner."""

    def __init__(self, me: str, scope: str = "create update media") -> None:
        self.me = me
        self.scope = scope
        self.tokens: list[str] = []

    async def verify(self, token: str) -> TokenVerification:
        self.tokens.append(token)
        if token != TEST_TOKEN:
            raise AuthError("Invalid access token")
        return TokenVerification(me=self.me, client_id=TEST_CLIENT_ID, scope=self.scope)


class MemoryBlobBackend:
    """Blob backend over a dict that counts writes."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.puts = 0

    def exists(self, hex_digest: str) -> bool:
        return hex_digest in self.blobs

    def put(self, hex_digest: str, data: bytes) -> None:
        self.puts += 1
        self.blobs[hex_digest] = data

    def get(self, hex_digest: str) -> bytes:
        try:
            return self.blobs[hex_digest]
        except KeyError as exc:
            raise NotFoundError(f"No media for '{hex_digest}'") from exc


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def test_settings() -> Settings:
    """Settings pinned to the values the tests assert against."""
    return Settings(
        HOST_WEBSITE="https://example.com/",
        TIMEZONE_OFFSET_SECONDS=0,
    )


@pytest.fixture()
def blob_backend() -> MemoryBlobBackend:
    return MemoryBlobBackend()


@pytest.fixture()
def media_store(blob_backend: MemoryBlobBackend) -> MediaStore:
    return MediaStore(blob_backend, max_upload_bytes=TEST_MAX_UPLOAD_BYTES, sanitize_timeout_seconds=5.0)


@pytest.fixture()
def indieauth() -> FakeIndieAuthClient:
    return FakeIndieAuthClient(me=settings.host_website)


@pytest.fixture()
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    indieauth: FakeIndieAuthClient,
    media_store: MediaStore,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_indieauth_client_dep] = lambda: indieauth
    app.dependency_overrides[get_media_store_dep] = lambda: media_store
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    """Authorization header carrying the accepted test token."""
    return {"Authorization": f"Bearer {TEST_TOKEN}"}


def make_jpeg(size: tuple[int, int] = (32, 24), exif: Any = None) -> bytes:
    """Return a small JPEG, optionally carrying ``exif``."""
    image = Image.new("RGB", size, color=(200, 40, 40))
    out = io.BytesIO()
    if exif is not None:
        image.save(out, format="JPEG", exif=exif)
    else:
        image.save(out, format="JPEG")
    return out.getvalue()


@pytest.fixture()
def gps_exif() -> Image.Exif:
    """EXIF block with a camera model and a GPS position."""
    exif = Image.Exif()
    exif[0x0110] = "Test Camera"  # Model
    exif[0x8825] = {
        0: b"\x00\x00\x00\x01",
        2: 4294967295,
        5: b"\x01",
        29: "1999:99:99 99:99:99",
        30: 65535,
    }
    return exif


@pytest.fixture()
def jpeg_factory() -> Any:
    """Expose ``make_jpeg`` to tests."""
    return make_jpeg
