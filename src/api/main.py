"""FastAPI application for the DriveChat API.

Provides the main application instance with routers, CORS and exception
handlers configured.
"""

import logging
import os
import sys
import time as _time
from contextlib import asynccontextmanager
from importlib.metadata import version as _pkg_version

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
# Ensure our application loggers are captured
logging.getLogger("src").setLevel(logging.INFO)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.dependencies import get_agent_config, shutdown_runtime
from src.api.routes import agent, chat, threads
from src.db.connection import async_init_db, close_async_db
from src.errors.domain import NotFoundError, ValidationError
from src.utils.paths import ensure_dirs_exist

logger = logging.getLogger(__name__)

# Module-level state for health endpoint
_startup_time: float = 0.0


def _parse_allowed_origins() -> list[str]:
    """Parse comma-separated CORS allowlist from ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "").strip()
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async lifespan: create tables on startup, close clients on shutdown."""
    global _startup_time

    _startup_time = _time.time()
    ensure_dirs_exist()
    await async_init_db()
    get_agent_config().apply_log_level()
    logger.info("DriveChat API started")

    yield

    await shutdown_runtime()
    await close_async_db()


app = FastAPI(
    title="DriveChat API",
    description="Multi-provider chat with a natural-language Google Drive agent",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS allowlist is env-driven. If unset, CORS is disabled (same-origin only).
allowed_origins = _parse_allowed_origins()
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# Include routers
app.include_router(agent.router, prefix="/api/v1")
app.include_router(threads.router, prefix="/api/v1")
app.include_router(chat.router, prefix="/api/v1")


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Dictionary with status, version and uptime.
    """
    uptime = int(_time.time() - _startup_time) if _startup_time else 0

    # Version from package metadata (matches pyproject.toml)
    try:
        version = _pkg_version("drivechat")
    except Exception:
        version = "unknown"

    return {
        "status": "healthy",
        "version": version,
        "uptime_seconds": uptime,
    }


@app.get("/api")
def api_root() -> dict:
    """API root with links to docs."""
    return {
        "name": "DriveChat API",
        "version": "0.1.0",
        "docs": "/docs",
        "redoc": "/redoc",
    }
