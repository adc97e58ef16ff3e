"""
Observability and monitoring setup for the score engine microservice.
"""

import asyncio
import logging
import sys
from typing import Optional, Dict, Any, Callable
from functools import wraps

import structlog
from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

logger = structlog.get_logger()

# Global tracer and meter
tracer: Optional[trace.Tracer] = None
meter: Optional[metrics.Meter] = None

# Metrics instruments
request_counter: Optional[metrics.Counter] = None
request_duration: Optional[metrics.Histogram] = None
error_counter: Optional[metrics.Counter] = None
score_counter: Optional[metrics.Counter] = None
duplicate_score_counter: Optional[metrics.Counter] = None
total_score_histogram: Optional[metrics.Histogram] = None
sweep_deleted_counter: Optional[metrics.Counter] = None
final_score_counter: Optional[metrics.Counter] = None


def configure_logging(log_level: str = "INFO") -> None:
    """Route stdlib logging to stdout and configure structlog for JSON output."""
    logging.basicConfig(level=log_level.upper(), stream=sys.stdout, format="%(message)s")

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
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def setup_observability(
    service_name: str = "aurum-score-engine",
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    enable_console_export: bool = True
) -> None:
    """
    Set up OpenTelemetry tracing and metrics.

    Args:
        service_name: Name of the service for tracing
        service_version: Version of the service
        otlp_endpoint: OTLP endpoint for trace/metric export
        enable_console_export: Whether to enable console export for development
    """
    global tracer, meter
    global request_counter, request_duration, error_counter
    global score_counter, duplicate_score_counter, total_score_histogram
    global sweep_deleted_counter, final_score_counter

    logger.info(
        "Setting up observability",
        service_name=service_name,
        service_version=service_version,
        otlp_endpoint=otlp_endpoint
    )

    resource = Resource.create({
        "service.name": service_name,
        "service.version": service_version,
    })

    # Set up tracing
    trace_provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))

    if enable_console_export:
        trace_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer(__name__)

    # Set up metrics
    metric_readers = []

    if otlp_endpoint:
        metric_readers.append(
            PeriodicExportingMetricReader(
                exporter=OTLPMetricExporter(endpoint=otlp_endpoint),
                export_interval_millis=30000  # 30 seconds
            )
        )

    if enable_console_export:
        metric_readers.append(
            PeriodicExportingMetricReader(
                exporter=ConsoleMetricExporter(),
                export_interval_millis=60000  # 60 seconds
            )
        )

    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=metric_readers))
    meter = metrics.get_meter(__name__)

    # Create metric instruments
    request_counter = meter.create_counter(
        name="http_requests_total",
        description="Total number of HTTP requests",
        unit="1"
    )

    request_duration = meter.create_histogram(
        name="http_request_duration_seconds",
        description="HTTP request duration in seconds",
        unit="s"
    )

    error_counter = meter.create_counter(
        name="http_errors_total",
        description="Total number of HTTP errors",
        unit="1"
    )

    score_counter = meter.create_counter(
        name="scores_generated_total",
        description="Total number of session scores generated",
        unit="1"
    )

    duplicate_score_counter = meter.create_counter(
        name="duplicate_score_attempts_total",
        description="Scoring attempts rejected because the session was already scored",
        unit="1"
    )

    total_score_histogram = meter.create_histogram(
        name="session_total_score",
        description="Distribution of generated total scores",
        unit="1"
    )

    sweep_deleted_counter = meter.create_counter(
        name="expired_scores_deleted_total",
        description="Score records deleted by the expiry sweeper",
        unit="1"
    )

    final_score_counter = meter.create_counter(
        name="final_scores_calculated_total",
        description="Total number of final score calculations",
        unit="1"
    )

    logger.info("Observability setup completed")


def instrument_fastapi_app(app) -> None:
    """
    Instrument FastAPI application with OpenTelemetry.

    Args:
        app: FastAPI application instance
    """
    if tracer is None:
        logger.warning("Tracer not initialized, call setup_observability() first")
        return

    FastAPIInstrumentor.instrument_app(app)
    HTTPXClientInstrumentor().instrument()

    logger.info("FastAPI application instrumented with OpenTelemetry")


def trace_function(operation_name: Optional[str] = None):
    """
    Decorator to trace function execution.

    Args:
        operation_name: Optional custom operation name for the span
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            if tracer is None:
                return await func(*args, **kwargs)

            span_name = operation_name or f"{func.__module__}.{func.__name__}"

            with tracer.start_as_current_span(span_name) as span:
                span.set_attribute("function.name", func.__name__)
                span.set_attribute("function.module", func.__module__)
                try:
                    result = await func(*args, **kwargs)
                    span.set_attribute("success", True)
                    return result
                except Exception as e:
                    span.record_exception(e)
                    span.set_attribute("success", False)
                    span.set_attribute("error.type", type(e).__name__)
                    span.set_attribute("error.message", str(e))
                    raise

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            if tracer is None:
                return func(*args, **kwargs)

            span_name = operation_name or f"{func.__module__}.{func.__name__}"

            with tracer.start_as_current_span(span_name) as span:
                span.set_attribute("function.name", func.__name__)
                span.set_attribute("function.module", func.__module__)
                try:
                    result = func(*args, **kwargs)
                    span.set_attribute("success", True)
                    return result
                except Exception as e:
                    span.record_exception(e)
                    span.set_attribute("success", False)
                    span.set_attribute("error.type", type(e).__name__)
                    span.set_attribute("error.message", str(e))
                    raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def record_score_metrics(success: bool, processing_time: float, total_score: Optional[int] = None) -> None:
    """
    Record metrics for a scoring attempt.

    Args:
        success: Whether a score was generated and stored
        processing_time: Time taken in seconds
        total_score: Generated total score (if any)
    """
    if score_counter is None or request_duration is None:
        return

    attributes = {
        "operation": "score",
        "success": str(success).lower()
    }

    score_counter.add(1, attributes)
    request_duration.record(processing_time, attributes)

    if total_score is not None and total_score_histogram is not None:
        total_score_histogram.record(total_score)


def record_duplicate_score() -> None:
    if duplicate_score_counter is not None:
        duplicate_score_counter.add(1)


def record_sweep_metrics(deleted: int, malformed: int, completed: bool) -> None:
    if sweep_deleted_counter is None:
        return

    sweep_deleted_counter.add(deleted, {"completed": str(completed).lower()})

    logger.info(
        "Sweep metrics recorded",
        deleted=deleted,
        malformed=malformed,
        completed=completed
    )


def record_final_score_metrics(success: bool, gender: Optional[str] = None) -> None:
    if final_score_counter is None:
        return

    final_score_counter.add(1, {
        "success": str(success).lower(),
        "gender": gender or "unknown"
    })


def record_http_metrics(
    method: str,
    path: str,
    status_code: int,
    processing_time: float
) -> None:
    """
    Record HTTP request metrics.

    Args:
        method: HTTP method
        path: Request path
        status_code: HTTP status code
        processing_time: Request processing time in seconds
    """
    if request_counter is None or request_duration is None or error_counter is None:
        return

    attributes = {
        "method": method,
        "path": path,
        "status_code": str(status_code)
    }

    request_counter.add(1, attributes)
    request_duration.record(processing_time, attributes)

    if status_code >= 400:
        error_counter.add(1, {
            **attributes,
            "error_type": "client_error" if status_code < 500 else "server_error"
        })


def get_trace_context() -> Dict[str, Any]:
    """
    Get current trace context information.

    Returns:
        Dict with trace ID and span ID if available
    """
    current_span = trace.get_current_span()
    if current_span is None or not current_span.is_recording():
        return {}

    span_context = current_span.get_span_context()
    return {
        "trace_id": f"{span_context.trace_id:032x}",
        "span_id": f"{span_context.span_id:016x}",
        "trace_flags": int(span_context.trace_flags)
    }


class TracingContextMiddleware:
    """
    Middleware to add tracing context to structured logs.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        trace_context = get_trace_context()
        if trace_context:
            structlog.contextvars.bind_contextvars(**trace_context)

        await self.app(scope, receive, send)
