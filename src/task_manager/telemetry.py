"""Unified observability setup for the task manager.

Configures OpenTelemetry traces, metrics and logs, exported over OTLP/HTTP.

Instrumentation Strategy:
- AUTO-INSTRUMENTATION: FastAPI, PyMongo, logging
- CUSTOM INSTRUMENTATION: task.* spans and counters in routes/tasks.py
"""

import atexit
import logging
from typing import Any

from opentelemetry import _logs, metrics, trace
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.pymongo import PymongoInstrumentor
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from task_manager import __version__
from task_manager.config import Settings


logger = logging.getLogger(__name__)


def setup_telemetry(settings: Settings) -> tuple[trace.Tracer, metrics.Meter]:
    """Initialize unified observability.

    Sets up:
    1. Trace provider with OTLP exporter (for spans)
    2. Meter provider with OTLP exporter (for metrics)
    3. Log provider with OTLP exporter (for logs with trace correlation)
    4. Auto-instrumentation for PyMongo and logging

    Must be called once, before the FastAPI app is created.

    Args:
        settings: Application settings.

    Returns:
        Tuple of (tracer, meter) for custom instrumentation
    """
    service_name = settings.otel_service_name

    if not settings.otel_enabled:
        logger.info("OpenTelemetry disabled")
        return trace.get_tracer(service_name), metrics.get_meter(service_name)

    endpoint = settings.otel_exporter_otlp_endpoint
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
            "deployment.environment": settings.scout_environment,
        }
    )

    # Traces
    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces"))
    )
    trace.set_tracer_provider(trace_provider)

    # Metrics
    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics"),
        export_interval_millis=10000,
    )
    metric_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(metric_provider)

    # Logs
    log_provider = LoggerProvider(resource=resource)
    log_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=f"{endpoint}/v1/logs"))
    )
    _logs.set_logger_provider(log_provider)
    logging.getLogger().addHandler(LoggingHandler(level=logging.INFO, logger_provider=log_provider))

    # Flush buffered telemetry on exit
    atexit.register(trace_provider.shutdown)
    atexit.register(metric_provider.shutdown)
    atexit.register(log_provider.shutdown)

    # PyMongo: one span per database command
    PymongoInstrumentor().instrument()

    # logging: adds trace_id and span_id to log records
    LoggingInstrumentor().instrument(set_logging_format=True)

    logger.info(
        "OpenTelemetry initialized",
        extra={"service": service_name, "endpoint": endpoint},
    )

    return trace.get_tracer(service_name), metrics.get_meter(service_name)


def instrument_fastapi(app: Any, settings: Settings) -> None:
    """Instrument FastAPI app after creation.

    Creates spans for every HTTP request with method, route, status code and
    duration. Must be called AFTER the FastAPI app is created.
    """
    if not settings.otel_enabled:
        return

    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls="health",
        exclude_spans=["receive", "send"],
    )
