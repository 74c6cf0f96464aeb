"""FastAPI application setup with lifespan and exception handlers."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from soundtrack import __version__, validate_dependencies
from soundtrack.api.routes import router, shutdown_sessions
from soundtrack.services.render_client import close_render_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Startup:
        - Validate provider credentials

    Shutdown:
        - Cancel any in-flight run or demo
        - Close the render HTTP client
    """
    logger.info("Starting SoundTrack API...")
    validate_dependencies()
    logger.info("API startup complete")

    yield

    logger.info("Shutting down SoundTrack API...")
    await shutdown_sessions()
    await close_render_client()
    logger.info("API shutdown complete")


app = FastAPI(
    title="SoundTrack API",
    version=__version__,
    lifespan=lifespan,
)

# CORS for a local web player during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler to prevent stack traces in API responses."""
    logger.error(
        f"Unhandled exception in {request.method} {request.url.path}: "
        f"{type(exc).__name__}: {exc}"
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc),
        },
    )
