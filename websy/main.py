"""Websy AI API - FastAPI application factory."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from websy.api.routes import chat
from websy.core.config import Settings, get_settings
from websy.core.exceptions import WebsyException, sanitize_error
from websy.core.logging_config import configure_logging
from websy.services.chat import ChatOrchestrator, build_orchestrator
from websy.services.scheduler import KeyPoolResetScheduler

logger = logging.getLogger(__name__)


def create_app(
    orchestrator: ChatOrchestrator,
    *,
    start_scheduler: bool | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build the API around an already wired orchestrator.

    Args:
        orchestrator: Orchestrator serving every request.
        start_scheduler: Run the periodic key pool reset; defaults to
            ``ENABLE_SCHEDULER``.
        settings: Settings to read defaults from; ``get_settings()`` if omitted.

    Returns:
        The configured FastAPI application.
    """
    settings = settings or get_settings()
    run_scheduler = settings.ENABLE_SCHEDULER if start_scheduler is None else start_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> Any:
        """Application lifespan handler for startup and shutdown events."""
        logger.info("Starting Websy AI API...", extra={"pool_size": orchestrator.key_pool.size})
        scheduler: KeyPoolResetScheduler | None = None
        if run_scheduler:
            scheduler = KeyPoolResetScheduler(
                orchestrator.key_pool, orchestrator.key_pool.reset_interval_hours
            )
            scheduler.start()
        else:
            logger.info("Background scheduler disabled (ENABLE_SCHEDULER != true)")
        app.state.scheduler = scheduler
        yield
        logger.info("Shutting down Websy AI API...")
        if scheduler is not None:
            scheduler.shutdown()

    app = FastAPI(
        title="Websy AI API",
        description="Resilient chat orchestrator with rotating provider keys",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.include_router(chat.router, prefix="/api")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.exception_handler(WebsyException)
    async def websy_exception_handler(request: Request, exc: WebsyException) -> JSONResponse:
        """Handle Websy-specific exceptions.

        Server-side failures get a sanitized message; client-side ones
        (validation, exhausted keys) keep their own.
        """
        request_id = str(uuid.uuid4())
        logger.warning(
            "Websy exception occurred",
            extra={
                "code": exc.code,
                "status_code": exc.status_code,
                "request_id": request_id,
                "path": request.url.path,
            },
        )
        detail = exc.message if exc.status_code < 500 else sanitize_error(exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": detail, "code": exc.code, "request_id": request_id},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request body parsing and validation errors."""
        request_id = str(uuid.uuid4())
        logger.warning(
            "Request validation error",
            extra={"request_id": request_id, "path": request.url.path},
        )
        return JSONResponse(
            status_code=400,
            content={
                "detail": "Request validation error",
                "code": "REQUEST_VALIDATION_ERROR",
                "request_id": request_id,
                "errors": jsonable_errors(exc),
            },
        )

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Validation errors reduced to JSON-safe location/message pairs."""
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": str(error.get("msg", ""))}
        for error in exc.errors()
    ]


def app_from_env() -> FastAPI:
    """Application factory for ``uvicorn websy.main:app_from_env --factory``.

    Only the provider side is wired from the environment; side-effect
    collaborators are injected by embedding applications through
    ``build_orchestrator``.
    """
    settings = get_settings()
    configure_logging(settings.LOG_FORMAT, settings.LOG_LEVEL)
    return create_app(build_orchestrator(settings), settings=settings)
