"""FastAPI application for the task manager."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from task_manager import __version__
from task_manager.config import Settings, get_settings
from task_manager.database import close_client, create_client, create_monitor, get_collection
from task_manager.errors import PayloadValidationError, error_response, record_error_on_span
from task_manager.middleware import MetricsMiddleware
from task_manager.routes import tasks_router
from task_manager.store import TaskStore
from task_manager.telemetry import instrument_fastapi, setup_telemetry


logger = logging.getLogger(__name__)


def _configure_logging(settings: Settings) -> None:
    """Configure logging for the application."""
    logging.basicConfig(level=settings.log_level.upper())

    # The driver logs every command and heartbeat at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)


settings = get_settings()
_configure_logging(settings)

# Initialize OTel SDK BEFORE app creation
setup_telemetry(settings)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Own the MongoDB client for the lifetime of the app."""
    current = get_settings()
    monitor = create_monitor()
    client = create_client(current, monitor)

    app.state.monitor = monitor
    app.state.task_store = TaskStore(get_collection(client, current))
    logger.info("Server is running on port %d", current.port)
    yield
    await close_client(client)
    logger.info("Database connections closed")


app = FastAPI(
    title="Task Manager",
    description="CRUD service for tasks stored in MongoDB",
    version=__version__,
    lifespan=lifespan,
)
app.add_middleware(MetricsMiddleware)
instrument_fastapi(app, settings)
app.include_router(tasks_router)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    record_error_on_span(exc)
    logger.warning("Invalid request body on %s %s", request.method, request.url.path)
    return error_response("Invalid request body", 400, errors=jsonable_encoder(exc.errors()))


@app.exception_handler(PayloadValidationError)
async def payload_validation_handler(request: Request, exc: PayloadValidationError) -> JSONResponse:
    record_error_on_span(exc)
    logger.warning("Invalid task payload on %s %s", request.method, request.url.path)
    return error_response("Invalid task payload", 400, errors=jsonable_encoder(exc.errors))


@app.get("/health")
async def health(request: Request) -> dict[str, str]:
    """Health check endpoint, reporting the MongoDB connection state."""
    monitor = getattr(request.app.state, "monitor", None)
    return {
        "status": "healthy",
        "service": get_settings().app_name,
        "version": __version__,
        "database": monitor.status if monitor is not None else "disconnected",
    }
