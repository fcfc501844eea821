"""FastAPI application for the sitecap HTTP server.

This module configures the FastAPI application with request logging,
error mapping for capture failures and the lifespan that starts and stops
the shared browser.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import SitecapSettings
from ..errors import CaptureTimeoutError, ConfigurationError, SitecapError
from .routes import router
from .schemas import ErrorResponse, HealthResponse
from .service import CaptureService, ContextNotFoundError

logger = logging.getLogger(__name__)

APP_TITLE = "sitecap"
APP_DESCRIPTION = "Capture screenshots, HTML, cookies, network traces and console logs of web pages."


def status_for_error(exc: SitecapError) -> int:
    """HTTP status code for a capture pipeline error."""
    if isinstance(exc, ConfigurationError):
        return 400
    if isinstance(exc, ContextNotFoundError):
        return 404
    if isinstance(exc, CaptureTimeoutError):
        return 504
    return 500


def _error_code(exc: SitecapError) -> str:
    if isinstance(exc, ConfigurationError):
        return "invalid_parameters"
    if isinstance(exc, ContextNotFoundError):
        return "context_not_found"
    if isinstance(exc, CaptureTimeoutError):
        return "capture_timeout"
    return "capture_failed"


def create_app(
    settings: Optional[SitecapSettings] = None,
    service: Optional[CaptureService] = None,
    debug: Optional[bool] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Loaded settings; built-in defaults if None
        service: Pre-built capture service (tests inject one with a fake engine)
        debug: Override the configured debug flag

    Returns:
        Configured FastAPI application instance
    """
    capture_service = service or CaptureService(settings, debug=debug)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await capture_service.start()
        try:
            yield
        finally:
            await capture_service.stop()

    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.capture_service = capture_service

    @app.middleware("http")
    async def add_request_id_and_logging(request: Request, call_next):
        """Add request ID and logging middleware."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(f"Request started: {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path} - {e} "
                f"({round(duration * 1000, 2)}ms)",
                exc_info=True
            )
            raise

        response.headers["X-Request-ID"] = request_id
        duration = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path} - "
            f"{response.status_code} ({round(duration * 1000, 2)}ms)"
        )
        return response

    @app.exception_handler(SitecapError)
    async def sitecap_exception_handler(request: Request, exc: SitecapError):
        """Map capture pipeline errors to status codes."""
        request_id = getattr(request.state, "request_id", None)
        status_code = status_for_error(exc)
        if status_code >= 500:
            logger.error(f"Capture error in request {request_id}: {exc}")

        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=_error_code(exc),
                message=str(exc),
                request_id=request_id,
            ).model_dump(mode='json')
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with consistent error format."""
        request_id = getattr(request.state, "request_id", None)

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=f"http_{exc.status_code}",
                message=str(exc.detail),
                request_id=request_id,
            ).model_dump(mode='json')
        )

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check():
        """Health check endpoint for monitoring."""
        running = capture_service.browser_running
        return HealthResponse(
            status="healthy" if running else "unhealthy",
            version=__version__,
            browser_running=running,
            contexts=len(capture_service.contexts),
            uptime_seconds=capture_service.uptime_seconds,
        )

    app.include_router(router)

    return app


def run_server(
    settings: Optional[SitecapSettings] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    debug: Optional[bool] = None,
) -> None:
    """Serve the API with uvicorn until interrupted."""
    import uvicorn

    settings = (settings or SitecapSettings()).resolved()
    app = create_app(settings, debug=debug)

    uvicorn.run(
        app,
        host=host or settings.server.listen,
        port=port or settings.server.port,
        log_level="info",
        access_log=False,
    )
