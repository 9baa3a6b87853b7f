"""
Main Application - FastAPI application setup.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import generate_latest

from purifier_billing.api.routes import router
from purifier_billing.api.service_job_routes import router as service_job_router
from purifier_billing.api.uninstallation_routes import router as uninstallation_router
from purifier_billing.config import settings
from purifier_billing.db.migration_runner import run_migrations
from purifier_billing.db.session import close_engines
from purifier_billing.observability import (
    get_logger,
    log_context,
    metrics,
    setup_logging,
    setup_tracing,
)
from purifier_billing.observability.tracing import instrument_fastapi

# Setup logging before anything else
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Applies pending migrations on startup and disposes the engine on shutdown.
    """
    logger.info(
        "application_starting",
        service=settings.api_title,
        version=settings.api_version,
        tracing_enabled=settings.tracing_enabled,
        metrics_enabled=settings.metrics_enabled,
    )

    if settings.run_migrations_on_startup:
        # Alembic's command API is synchronous
        await asyncio.to_thread(run_migrations)

    yield

    logger.info("application_shutting_down")
    await close_engines()
    logger.info("database_engines_closed")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log detailed validation errors for debugging."""
    sanitized_errors = []
    for error in exc.errors():
        sanitized = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": error.get("input"),
        }
        # ctx may contain non-serializable objects
        if "ctx" in error:
            sanitized["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        sanitized_errors.append(sanitized)

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        errors=sanitized_errors,
    )
    return JSONResponse(
        status_code=422,
        content={"detail": sanitized_errors},
    )


# Setup tracing
setup_tracing()
instrument_fastapi(app)

# CORS middleware for the admin UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Log all HTTP requests with timing."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")

    endpoint = request.url.path
    method = request.method

    if settings.metrics_enabled:
        metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).inc()

    try:
        with log_context(request_id=request_id):
            response = await call_next(request)
        duration = time.time() - start_time

        if settings.metrics_enabled:
            metrics.record_http_request(endpoint, method, response.status_code, duration)

        logger.info(
            "request_completed",
            method=method,
            path=endpoint,
            status_code=response.status_code,
            duration_seconds=duration,
            request_id=request_id,
        )

        return response
    except Exception as e:
        duration = time.time() - start_time
        if settings.metrics_enabled:
            metrics.record_http_request(endpoint, method, 500, duration)
            metrics.record_error(type(e).__name__, "http_request")

        logger.error(
            "request_failed",
            method=method,
            path=endpoint,
            error=str(e),
            duration_seconds=duration,
            request_id=request_id,
            exc_info=True,
        )
        raise
    finally:
        if settings.metrics_enabled:
            metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).dec()


# Register routes
app.include_router(router)
app.include_router(service_job_router)
app.include_router(uninstallation_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.api_title,
        "version": settings.api_version,
        "status": "running",
    }


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    return PlainTextResponse(generate_latest())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "purifier_billing.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
