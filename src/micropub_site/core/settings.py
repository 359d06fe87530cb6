"""Application settings and configuration.

This module defines all configuration options for the Micropub site backend.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_UPLOAD_BYTES = 1024 * 1024 * 50


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Micropub Site", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./micropub.db", alias="DATABASE_URL")
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, alias="DB_MAX_OVERFLOW")
    db_pool_timeout: float = Field(default=5.0, alias="DB_POOL_TIMEOUT")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    # Create missing tables at startup; turn off when the schema is managed by alembic.
    create_tables_on_startup: bool = Field(default=True, alias="CREATE_TABLES_ON_STARTUP")

    # The site that owns this endpoint; IndieAuth "me" must match it.
    host_website: str = Field(default="https://example.com/", alias="HOST_WEBSITE")
    # Seconds east of UTC used for timestamps that arrive without an offset.
    timezone_offset_seconds: int = Field(default=0, alias="TIMEZONE_OFFSET_SECONDS")

    # IndieAuth settings
    auth_endpoint: str = Field(default="https://indieauth.com/auth", alias="AUTH_ENDPOINT")
    token_endpoint: str = Field(
        default="https://tokens.indieauth.com/token",
        alias="TOKEN_ENDPOINT",
    )
    auth_timeout_seconds: float = Field(default=10.0, alias="AUTH_TIMEOUT_SECONDS")

    # Media endpoint settings
    media_endpoint: str = Field(
        default="https://example.com/api/v1/media",
        alias="MEDIA_ENDPOINT",
    )
    media_max_upload_bytes: int = Field(
        default=DEFAULT_MAX_UPLOAD_BYTES,
        alias="MEDIA_MAX_UPLOAD_BYTES",
    )
    media_sanitize_timeout_seconds: float = Field(
        default=15.0,
        alias="MEDIA_SANITIZE_TIMEOUT_SECONDS",
    )

    # Blob backend: "filesystem" keeps blobs on disk, "http" talks to an
    # external content-addressed blob service.
    blob_backend: str = Field(default="filesystem", alias="BLOB_BACKEND")
    blob_store_path: str = Field(default="./blobs", alias="BLOB_STORE_PATH")
    blob_store_base_uri: str = Field(
        default="http://localhost:3031",
        alias="BLOB_STORE_BASE_URI",
    )
    blob_http_timeout_seconds: float = Field(default=30.0, alias="BLOB_HTTP_TIMEOUT_SECONDS")

    # CORS configuration for browser-based Micropub clients
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def is_sqlite(self) -> bool:
        """Return True when the configured database is SQLite."""
        return self.database_url.startswith("sqlite")

    def post_url(self, slug: str) -> str:
        """Return the public URL for a post slug."""
        return f"{self.host_website.rstrip('/')}/{slug}"

    def media_url(self, hex_digest: str) -> str:
        """Return the public URL for a stored media blob."""
        return f"{self.media_endpoint.rstrip('/')}/{hex_digest}"

    def slug_from_url(self, url: str) -> str:
        """Return the slug addressed by a post URL on this site.

        URLs that do not start with the host website are treated as bare slugs.
        """
        base = self.host_website.rstrip("/") + "/"
        if url.startswith(base):
            return url[len(base):].strip("/")
        return url.strip("/")


settings = Settings()
