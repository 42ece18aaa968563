"""
Custom middleware for the registration gate.
"""

import time
import uuid
from typing import Callable, Dict, Any, List, Optional, Set
from datetime import datetime, timezone

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from roster_gate.observability import record_http_metrics
from roster_gate.services.errors import ErrorKind
from roster_gate.utils.messages import error_message

logger = structlog.get_logger()

CORRELATION_HEADER = "X-Request-ID"


def get_correlation_id(request: Request) -> str:
    """Correlation ID assigned by RequestLoggingMiddleware, or the caller's header."""
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        return correlation_id
    return request.headers.get(CORRELATION_HEADER) or f"req_{uuid.uuid4().hex[:16]}"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request/response logging with correlation ID support.
    """

    def __init__(self, app, exclude_paths: Optional[Set[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or {"/healthz", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or f"req_{uuid.uuid4().hex[:16]}"
        request.state.correlation_id = correlation_id

        if request.url.path in self.exclude_paths:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        # Request bodies carry phone numbers, codes and IDs; only the route is logged
        start_time = time.time()
        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            user_agent=request.headers.get("User-Agent", "unknown"),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                "Request failed",
                error_type=type(e).__name__,
                process_time_ms=round(process_time * 1000, 2),
            )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": ErrorKind.INFRASTRUCTURE.value,
                    "message": error_message(ErrorKind.INFRASTRUCTURE),
                    "correlation_id": correlation_id,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                },
                headers={CORRELATION_HEADER: correlation_id}
            )

        process_time = time.time() - start_time
        logger.info(
            "Request completed",
            status_code=response.status_code,
            process_time_ms=round(process_time * 1000, 2),
        )
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to responses.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers.update({
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
            "Content-Security-Policy": "default-src 'self'",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Cache-Control": "no-store"
        })

        return response


class RequestMetrics:
    """Process-wide request counters exposed on /metrics."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.request_count = 0
        self.error_count = 0
        self.total_processing_time = 0.0

    def record(self, status_code: int, processing_time: float) -> None:
        self.request_count += 1
        self.total_processing_time += processing_time
        if status_code >= 400:
            self.error_count += 1

    def snapshot(self) -> Dict[str, Any]:
        avg_processing_time = (
            self.total_processing_time / self.request_count
            if self.request_count > 0 else 0
        )
        return {
            "total_requests": self.request_count,
            "error_count": self.error_count,
            "error_rate": self.error_count / self.request_count if self.request_count > 0 else 0,
            "avg_processing_time_ms": round(avg_processing_time * 1000, 2)
        }


request_metrics = RequestMetrics()


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect basic metrics about requests.
    """

    def __init__(self, app, recorder: Optional[RequestMetrics] = None):
        super().__init__(app)
        self.recorder = recorder or request_metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            processing_time = time.time() - start_time
            self.recorder.record(500, processing_time)
            record_http_metrics(request.method, request.url.path, 500, processing_time)
            raise

        processing_time = time.time() - start_time
        self.recorder.record(response.status_code, processing_time)
        record_http_metrics(request.method, request.url.path, response.status_code, processing_time)
        return response


def get_metrics() -> Dict[str, Any]:
    """Get current application metrics."""
    return request_metrics.snapshot()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-IP request throttle (in-memory, for basic protection).

    This sits in front of the per-phone OTP limit and does not replace it.
    """

    def __init__(
        self,
        app,
        max_requests: int = 100,
        window_seconds: int = 60,
        exclude_paths: Optional[Set[str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.exclude_paths = exclude_paths or {"/healthz"}
        self.clock = clock
        self.requests: Dict[str, List[float]] = {}
        self._last_sweep = clock()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        current_time = self.clock()
        self._sweep(current_time)

        recent = [
            req_time for req_time in self.requests.get(client_ip, [])
            if current_time - req_time < self.window_seconds
        ]
        self.requests[client_ip] = recent

        if len(recent) >= self.max_requests:
            logger.warning(
                "IP rate limit exceeded",
                client_ip=client_ip,
                request_count=len(recent),
                max_requests=self.max_requests
            )
            retry_after = int(self.window_seconds - (current_time - recent[0])) + 1
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": ErrorKind.RATE_LIMITED.value,
                    "message": f"Too many requests. Limit: {self.max_requests} per {self.window_seconds} seconds",
                    "correlation_id": get_correlation_id(request),
                    "timestamp": datetime.now(timezone.utc).isoformat()
                },
                headers={"Retry-After": str(max(retry_after, 1))}
            )

        recent.append(current_time)
        return await call_next(request)

    def _sweep(self, current_time: float) -> None:
        """Forget clients with no request inside the window, at most once per window."""
        if current_time - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = current_time
        stale = [
            ip for ip, times in self.requests.items()
            if not times or current_time - times[-1] >= self.window_seconds
        ]
        for ip in stale:
            del self.requests[ip]
