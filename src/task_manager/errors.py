"""Error responses with OpenTelemetry trace context."""

from typing import Any

from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.trace import StatusCode


TRACE_ID_HEADER = "X-Trace-Id"


class PayloadValidationError(Exception):
    """A request body failed task schema validation."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        super().__init__("Invalid task payload")
        self.errors = errors


def record_error_on_span(exc: Exception) -> None:
    span = trace.get_current_span()
    if span.is_recording():
        span.record_exception(exc)
        span.set_attribute("error.type", type(exc).__name__)
        span.set_status(StatusCode.ERROR, str(exc))


def error_response(
    message: str,
    status_code: int,
    exc: Exception | None = None,
    **extra: Any,
) -> JSONResponse:
    """Create an error response carrying the current trace id.

    Use this function in routes instead of building JSONResponse directly.

    Args:
        message: Fixed, human-readable description of what failed.
        status_code: HTTP status code.
        exc: Underlying failure; its message is echoed as ``error``.
        **extra: Additional body fields.

    Returns:
        JSON response with ``{message, error?}`` body.
    """
    body: dict[str, Any] = {"message": message}
    if exc is not None:
        body["error"] = str(exc)
        record_error_on_span(exc)
    body.update(extra)

    headers = {}
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        headers[TRACE_ID_HEADER] = format(span_context.trace_id, "032x")

    return JSONResponse(body, status_code=status_code, headers=headers)
