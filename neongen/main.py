"""
NeonGen Studio API - LoRA Style Training & Generation
FastAPI Backend Entry Point
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from neongen import __version__
from neongen.api import images, styles
from neongen.core.config import Settings, settings as default_settings
from neongen.core.errors import StudioError
from neongen.schemas.common import failure
from neongen.services.fal_client import FalClient
from neongen.services.job_store import JobStore, create_job_store
from neongen.services.storage import StorageService

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def _validation_message(exc: RequestValidationError) -> str:
    """Readable one-line summary of request validation errors."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI):
    """Every error leaves the API as {success: false, error: "..."}."""

    @app.exception_handler(StudioError)
    async def studio_error_handler(request: Request, exc: StudioError):
        return JSONResponse(status_code=exc.status_code, content=failure(exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content=failure(str(exc.detail)))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=failure(_validation_message(exc)),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=failure("Internal server error"),
        )


def create_app(
    config: Optional[Settings] = None,
    job_store: Optional[JobStore] = None,
    fal_client: Optional[FalClient] = None,
    storage: Optional[StorageService] = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators not passed in are created in the lifespan from settings,
    once per process.
    """
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        logger.info(f"Starting {config.APP_NAME}...")
        app.state.config = config
        app.state.job_store = job_store if job_store is not None else create_job_store(config)
        app.state.fal_client = fal_client if fal_client is not None else FalClient(config=config)
        app.state.storage = storage if storage is not None else StorageService(
            fal_client=app.state.fal_client, config=config
        )
        yield
        logger.info(f"Shutting down {config.APP_NAME}...")
        if fal_client is None:
            await app.state.fal_client.aclose()
        if job_store is None:
            app.state.job_store.close()

    app = FastAPI(
        title=config.APP_NAME,
        description="LoRA style training and image generation on fal.ai",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(styles.router, prefix="/api/styles", tags=["Styles"])
    app.include_router(images.router, prefix="/api/images", tags=["Image Generation"])

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Health check endpoint for deployments and monitoring.
        Returns detailed status of critical services.
        """
        report = {
            "status": "healthy",
            "version": __version__,
            "environment": {
                "job_store": config.JOB_STORE_BACKEND,
                "storage": config.STORAGE_BACKEND,
            },
            "services": {}
        }

        checks = {
            "job_store": request.app.state.job_store.health,
            "storage": request.app.state.storage.health,
        }
        for name, check in checks.items():
            try:
                report["services"][name] = check()
            except Exception as e:
                report["services"][name] = f"error: {str(e)}"
            if report["services"][name] != "ok":
                report["status"] = "degraded"

        report["services"]["fal"] = "ok" if request.app.state.fal_client.configured else "error: FAL_KEY not configured"
        if report["services"]["fal"] != "ok":
            report["status"] = "degraded"

        return report

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            "message": f"{config.APP_NAME} - LoRA style training & generation",
            "docs": "/docs",
            "health": "/health",
        }

    return app


configure_logging(default_settings.LOG_LEVEL)
app = create_app()
