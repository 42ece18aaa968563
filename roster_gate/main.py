"""Main FastAPI application for the roster gate service."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from roster_gate.config import settings
from roster_gate.api.admin import router as admin_router
from roster_gate.api.auth import create_error_response, gate_error_response, router as auth_router
from roster_gate.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    MetricsMiddleware,
    RateLimitMiddleware,
    get_correlation_id,
    get_metrics
)
from roster_gate.models.api_models import HealthResponse
from roster_gate.observability import (
    setup_observability,
    instrument_fastapi_app,
    TracingContextMiddleware
)
from roster_gate.services.errors import ErrorKind, GateError
from roster_gate.services import verification_service

SERVICE_VERSION = "1.0.0"

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "Starting roster gate service",
        port=settings.port,
        host=settings.host,
        environment=settings.environment,
        store_backend=settings.store_backend
    )

    if settings.otlp_endpoint or settings.otel_console_export:
        setup_observability(
            service_name="roster-gate",
            service_version=SERVICE_VERSION,
            otlp_endpoint=settings.otlp_endpoint,
            enable_console_export=settings.otel_console_export
        )
        instrument_fastapi_app(app)

    yield

    logger.info("Shutting down roster gate service")
    if verification_service._verification_service is not None:
        await verification_service._verification_service.close()


app = FastAPI(
    title="Roster Gate",
    description="Phone OTP verification and authorized-personnel registration gate",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

# Add middleware (order matters - last added is executed first)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(
    RateLimitMiddleware,
    max_requests=settings.ip_rate_limit_max_requests,
    window_seconds=settings.ip_rate_limit_window_seconds
)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TracingContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-Admin-Key", "X-Request-ID"],
)

app.include_router(auth_router)
app.include_router(admin_router)


@app.exception_handler(GateError)
async def gate_error_handler(request: Request, exc: GateError):
    """Errors raised outside route bodies, such as the admin key dependency."""
    return gate_error_response(exc, get_correlation_id(request), request.url.path)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed JSON bodies use the same error shape as service validation."""
    fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
    return create_error_response(
        ErrorKind.VALIDATION,
        get_correlation_id(request),
        details={"fields": fields}
    )


@app.get("/healthz", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness probe."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=SERVICE_VERSION
    )


@app.get("/metrics")
async def metrics_endpoint():
    """Application metrics endpoint."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "metrics": get_metrics()
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "roster_gate.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False
    )
