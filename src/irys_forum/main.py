# src/irys_forum/main.py
"""Main entry point for the forum API."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from irys_forum.api.v1 import (
    comments_router,
    follows_router,
    posts_router,
    recommendations_router,
    stats_router,
    system_router,
    tasks_router,
    usernames_router,
    users_router,
)
from irys_forum.core.errors import ForumError
from irys_forum.core.logging_config import configure_logging
from irys_forum.core.settings import settings
from irys_forum.services.backends import Backends, build_backends

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Forum backend with on-chain transaction verification",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(posts_router, prefix="/api")
app.include_router(comments_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(usernames_router, prefix="/api")
app.include_router(follows_router, prefix="/api")
app.include_router(recommendations_router, prefix="/api")
app.include_router(tasks_router, prefix="/api")
app.include_router(stats_router, prefix="/api")
app.include_router(system_router, prefix="/api")

# Uploaded avatars are served straight from disk
Path(settings.avatar_dir).mkdir(parents=True, exist_ok=True)
app.mount("/avatars", StaticFiles(directory=settings.avatar_dir), name="avatars")


@app.exception_handler(ForumError)
async def forum_error_handler(request: Request, exc: ForumError) -> JSONResponse:
    """Render service failures as ``{"detail", "error"}`` with their HTTP status."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging(settings)
    backends = build_backends(settings)
    await backends.start()
    app.state.backends = backends
    logger.info(
        "%s %s started (store=%s, cache=%s, chain=%s, tasks=%s)",
        settings.app_name,
        settings.app_version,
        backends.repository.backend_name,
        backends.cache.backend_name,
        "online" if backends.verifier.enabled else "offline",
        backends.tasks.backend_name,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    backends: Backends | None = getattr(app.state, "backends", None)
    if backends:
        await backends.stop()


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
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("irys_forum.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
