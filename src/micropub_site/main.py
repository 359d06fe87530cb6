"""Main entry point for the Micropub site backend."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from micropub_site.api.v1 import media_router, micropub_router, posts_router
from micropub_site.core.errors import AuthError, MicropubError
from micropub_site.core.settings import settings
from micropub_site.db.session import create_tables

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Micropub endpoint with versioned posts and a content-addressed media store",
    version=settings.app_version,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=["Location"],
)
app.add_middleware(GZipMiddleware)

app.include_router(micropub_router, prefix="/api/v1")
app.include_router(media_router, prefix="/api/v1")
app.include_router(posts_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.create_tables_on_startup:
        create_tables()
        logger.info("Database tables ensured")


@app.exception_handler(MicropubError)
async def micropub_error_handler(request: Request, exc: MicropubError) -> JSONResponse:
    """Render publishing errors in the Micropub error format."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if type(exc) is AuthError else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_code, "error_description": exc.message},
        headers=headers,
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "micropub": "/api/v1/micropub",
        "media": "/api/v1/media",
        "authorization_endpoint": settings.auth_endpoint,
        "token_endpoint": settings.token_endpoint,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("micropub_site.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
