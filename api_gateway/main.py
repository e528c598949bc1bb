"""
FastAPI application entry point.

Application setup with CORS, middleware, exception handlers, route
registration, and the lifespan that wires the pipeline components.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.config import Settings, settings as default_settings
from shared.errors import PipelineError, ValidationError
from shared.logging import configure_logging, get_logger
from shared.redis_client import RedisClient
from modules.asset_provider.base import AssetProvider
from modules.asset_provider.provider import HttpAssetProvider
from modules.compositor.compositor import Compositor
from api_gateway.orchestrator import PipelineCoordinator
from api_gateway.services.event_publisher import EventPublisher
from api_gateway.services.progress_broadcaster import ProgressBroadcaster
from api_gateway.worker import RunSupervisor

logger = get_logger(__name__)

SERVICE_NAME = "Slideshow Video API"
SERVICE_VERSION = "1.0.0"


def _error_response(request: Request, status_code: int, code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": message, "details": details},
            "request_id": getattr(request.state, "request_id", None)
        }
    )


def create_app(
    settings: Optional[Settings] = None,
    assets: Optional[AssetProvider] = None,
    compositor: Optional[Compositor] = None
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings override (defaults to the environment)
        assets: Asset provider override (defaults to the HTTP provider)
        compositor: Compositor override (defaults to ffmpeg)

    Returns:
        Configured FastAPI app
    """
    settings = settings or default_settings
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        redis_client = RedisClient(settings.redis_url) if settings.redis_url else None
        publisher = EventPublisher(redis_client)
        broadcaster = ProgressBroadcaster(settings.max_subscribers_per_session)
        coordinator = PipelineCoordinator(
            assets=assets or HttpAssetProvider.from_settings(settings),
            compositor=compositor or Compositor.from_settings(settings),
            broadcaster=broadcaster,
            publisher=publisher,
            temp_dir=settings.temp_dir,
            output_dir=settings.video_output_dir,
            default_voice_id=settings.default_voice_id,
            image_concurrency=settings.image_concurrency,
            public_base_url=settings.public_base_url,
        )
        supervisor = RunSupervisor(coordinator, settings.max_concurrent_runs)

        app.state.settings = settings
        app.state.publisher = publisher
        app.state.broadcaster = broadcaster
        app.state.supervisor = supervisor

        logger.info(
            "Application started",
            extra={"environment": settings.environment, "redis_mirror": publisher.enabled}
        )
        try:
            yield
        finally:
            await supervisor.shutdown()
            await publisher.close()
            logger.info("Application stopped")

    app = FastAPI(
        title=SERVICE_NAME,
        description="Narrated vertical slideshow video generation",
        version=SERVICE_VERSION,
        lifespan=lifespan
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        allow_credentials=settings.frontend_url != "*",
        max_age=3600
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add unique request ID to each request."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        logger.info(
            "Request started",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path
            }
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        """Handle validation errors."""
        return _error_response(request, 400, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle FastAPI request model validation errors."""
        return _error_response(request, 400, "VALIDATION_ERROR", "Invalid request format", str(exc.errors()))

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError):
        """Handle pipeline errors."""
        logger.error(
            "Pipeline error in request",
            exc_info=exc,
            extra={"request_id": getattr(request.state, "request_id", None)}
        )
        return _error_response(request, 500, exc.code, exc.message)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors."""
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            extra={"request_id": getattr(request.state, "request_id", None)}
        )
        return _error_response(request, 500, "INTERNAL_ERROR", "Internal server error")

    # Register routes
    from api_gateway.routes import health, media, progress, videos

    app.include_router(videos.router, prefix="/api", tags=["videos"])
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(progress.router, tags=["progress"])
    app.include_router(media.router, tags=["media"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": SERVICE_NAME, "version": SERVICE_VERSION}

    return app


app = create_app()
