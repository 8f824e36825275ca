from unittest.mock import MagicMock, patch

from task_manager.config import Settings
from task_manager.telemetry import instrument_fastapi, setup_telemetry


_ENABLED_PATCHES = (
    "task_manager.telemetry.TracerProvider",
    "task_manager.telemetry.MeterProvider",
    "task_manager.telemetry.LoggerProvider",
    "task_manager.telemetry.BatchSpanProcessor",
    "task_manager.telemetry.BatchLogRecordProcessor",
    "task_manager.telemetry.PeriodicExportingMetricReader",
    "task_manager.telemetry.OTLPSpanExporter",
    "task_manager.telemetry.OTLPMetricExporter",
    "task_manager.telemetry.OTLPLogExporter",
    "task_manager.telemetry.LoggingHandler",
    "task_manager.telemetry.LoggingInstrumentor",
    "task_manager.telemetry.PymongoInstrumentor",
    "task_manager.telemetry.trace",
    "task_manager.telemetry.metrics",
    "task_manager.telemetry._logs",
    "task_manager.telemetry.atexit",
    "task_manager.telemetry.logging",
)


def _enter_patches() -> dict[str, MagicMock]:
    """Start all common patches and return a name->mock mapping."""
    mocks: dict[str, MagicMock] = {}
    for target in _ENABLED_PATCHES:
        p = patch(target)
        short = target.rsplit(".", 1)[-1]
        mocks[short] = p.start()
    return mocks


def _enabled_settings() -> Settings:
    return Settings(
        _env_file=None,
        otel_enabled=True,
        otel_exporter_otlp_endpoint="http://collector:4318",
    )


def test_disabled_returns_noop_providers() -> None:
    tracer, meter = setup_telemetry(Settings(_env_file=None, otel_enabled=False))

    assert tracer is not None
    assert meter is not None
    span = tracer.start_span("test")
    span.end()


def test_enabled_creates_providers() -> None:
    mocks = _enter_patches()
    try:
        setup_telemetry(_enabled_settings())

        mocks["TracerProvider"].assert_called_once()
        mocks["MeterProvider"].assert_called_once()
        mocks["LoggerProvider"].assert_called_once()
        mocks["trace"].set_tracer_provider.assert_called_once()
        mocks["metrics"].set_meter_provider.assert_called_once()
        mocks["_logs"].set_logger_provider.assert_called_once()
        mocks["OTLPSpanExporter"].assert_called_once_with(
            endpoint="http://collector:4318/v1/traces"
        )
    finally:
        patch.stopall()


def test_enabled_instruments_pymongo_and_logging() -> None:
    mocks = _enter_patches()
    try:
        setup_telemetry(_enabled_settings())

        mocks["PymongoInstrumentor"].return_value.instrument.assert_called_once()
        mocks["LoggingInstrumentor"].return_value.instrument.assert_called_once_with(
            set_logging_format=True
        )
    finally:
        patch.stopall()


def test_enabled_registers_shutdown_hooks() -> None:
    mocks = _enter_patches()
    try:
        setup_telemetry(_enabled_settings())

        assert mocks["atexit"].register.call_count == 3
    finally:
        patch.stopall()


def test_instrument_fastapi_skipped_when_disabled() -> None:
    with patch("opentelemetry.instrumentation.fastapi.FastAPIInstrumentor") as instrumentor:
        instrument_fastapi(MagicMock(), Settings(_env_file=None, otel_enabled=False))

    instrumentor.instrument_app.assert_not_called()


def test_instrument_fastapi_excludes_health() -> None:
    app = MagicMock()
    with patch("opentelemetry.instrumentation.fastapi.FastAPIInstrumentor") as instrumentor:
        instrument_fastapi(app, _enabled_settings())

    instrumentor.instrument_app.assert_called_once_with(
        app,
        excluded_urls="health",
        exclude_spans=["receive", "send"],
    )
