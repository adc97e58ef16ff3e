"""
Custom middleware for the score engine microservice.
"""

import time
from typing import Callable, Dict, Any
from datetime import datetime, timezone

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from aurum_score.observability import record_http_metrics

logger = structlog.get_logger()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request/response logging with correlation ID support.
    """

    def __init__(self, app, exclude_paths: set = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or {"/healthz", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        correlation_id = request.headers.get("X-Call-ID", f"req_{int(time.time() * 1000)}")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        start_time = time.time()
        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            query_params=dict(request.query_params),
            user_agent=request.headers.get("User-Agent", "unknown")
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                process_time_ms=round(process_time * 1000, 2)
            )

            return JSONResponse(
                status_code=500,
                content={
                    "error": "InternalServerError",
                    "message": "An unexpected error occurred",
                    "correlation_id": correlation_id,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                },
                headers={"X-Call-ID": correlation_id}
            )

        process_time = time.time() - start_time
        logger.info(
            "Request completed",
            status_code=response.status_code,
            process_time_ms=round(process_time * 1000, 2)
        )

        response.headers["X-Call-ID"] = correlation_id
        return response


class RequestMetrics:
    """In-process request counters backing the /metrics endpoint."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.request_count = 0
        self.error_count = 0
        self.total_processing_time = 0.0

    def observe(self, status_code: int, processing_time: float) -> None:
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


# Shared by every MetricsMiddleware instance
request_metrics = RequestMetrics()


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect basic metrics about requests.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            processing_time = time.time() - start_time
            request_metrics.observe(500, processing_time)
            record_http_metrics(request.method, request.url.path, 500, processing_time)
            raise

        processing_time = time.time() - start_time
        request_metrics.observe(response.status_code, processing_time)
        record_http_metrics(request.method, request.url.path, response.status_code, processing_time)
        return response


def get_metrics() -> Dict[str, Any]:
    """Get current application metrics."""
    return request_metrics.snapshot()
