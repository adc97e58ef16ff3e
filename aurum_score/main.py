"""Main FastAPI application for the score engine microservice."""

import asyncio
import signal
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aurum_score.config import settings
from aurum_score.api.scores import router as scores_router
from aurum_score.jobs.sweep import sweep_forever
from aurum_score.middleware import (
    RequestLoggingMiddleware,
    MetricsMiddleware,
    get_metrics
)
from aurum_score.models.api_models import HealthResponse
from aurum_score.observability import (
    configure_logging,
    setup_observability,
    instrument_fastapi_app,
    TracingContextMiddleware
)

SERVICE_VERSION = "1.0.0"

configure_logging(settings.log_level)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting score engine microservice",
                port=settings.port,
                host=settings.host,
                storage_backend=settings.storage_backend)

    setup_observability(
        service_name="aurum-score-engine",
        service_version=SERVICE_VERSION,
        otlp_endpoint=settings.otlp_endpoint,
        enable_console_export=settings.otlp_endpoint is None
    )
    instrument_fastapi_app(app)

    sweep_task = None
    if settings.sweep_interval_seconds > 0:
        logger.info("Starting periodic expiry sweep", interval_seconds=settings.sweep_interval_seconds)
        sweep_task = asyncio.create_task(sweep_forever(settings.sweep_interval_seconds))

    yield

    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass

    logger.info("Shutting down score engine microservice")


app = FastAPI(
    title="Aurum Score Engine",
    description="Deterministic session scoring, score history and final score entitlement service",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

# Add middleware (order matters - last added is executed first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(TracingContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(scores_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as 400 with the standard error body."""
    missing = [".".join(str(part) for part in error["loc"][1:]) for error in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "error": "ValidationError",
                "message": f"Invalid or missing fields: {', '.join(missing)}",
                "correlation_id": request.headers.get("X-Call-ID", "unknown"),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        }
    )


@app.get("/healthz", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
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


def handle_shutdown(signum, frame):
    """Handle graceful shutdown signals."""
    logger.info("Received shutdown signal", signal=signum)
    sys.exit(0)


if __name__ == "__main__":
    import uvicorn

    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    uvicorn.run(
        "aurum_score.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False
    )
