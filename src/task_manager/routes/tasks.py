"""Task CRUD endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from opentelemetry import metrics, trace
from pydantic import ValidationError

from task_manager.config import Settings, get_settings
from task_manager.errors import PayloadValidationError, error_response
from task_manager.models import TASK_FIELDS, TaskCreate, TaskFields, TaskUpdate
from task_manager.store import StorageError, TaskStore


logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)
meter = metrics.get_meter(__name__)

tasks_created = meter.create_counter(
    name="tasks.created",
    description="Tasks created",
    unit="1",
)
tasks_updated = meter.create_counter(
    name="tasks.updated",
    description="Tasks updated",
    unit="1",
)
tasks_deleted = meter.create_counter(
    name="tasks.deleted",
    description="Tasks deleted",
    unit="1",
)

router = APIRouter(prefix="/tasks", tags=["tasks"])

TASK_NOT_FOUND = "Task not found"


def get_task_store(request: Request) -> TaskStore:
    """Dependency returning the store created in the application lifespan."""
    return request.app.state.task_store


StoreDep = Annotated[TaskStore, Depends(get_task_store)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
Payload = Annotated[dict[str, Any] | None, Body()]


def shape_payload(
    schema: type[TaskFields], payload: dict[str, Any] | None, settings: Settings
) -> dict[str, Any]:
    """Pick the mutable task fields out of a request body.

    In strict mode the body is validated here and a violation raises
    PayloadValidationError. In store mode the fields pass through as sent
    and the store enforces the schema.
    """
    payload = payload or {}
    if settings.validation_mode == "store":
        return {name: payload.get(name) for name in TASK_FIELDS}

    try:
        task = schema.model_validate(payload)
    except ValidationError as exc:
        raise PayloadValidationError(
            exc.errors(include_url=False, include_context=False, include_input=False)
        ) from exc
    return task.model_dump(by_alias=True)


@router.post("", status_code=201)
async def create_task(store: StoreDep, settings: SettingsDep, payload: Payload = None):
    """Create a new task.

    Returns:
        201 with ``{message, task}``.
    """
    fields = shape_payload(TaskCreate, payload, settings)

    with tracer.start_as_current_span("task.create") as span:
        try:
            task = await store.insert(fields)
        except StorageError as exc:
            logger.error("Failed to create task: %s", exc)
            return error_response("Failed to create task", 500, exc)

        span.set_attribute("task.id", task.id)
        tasks_created.add(1, {"priority": task.priority or "none"})
        logger.info("Task created: %s", task.id)

        return JSONResponse({"message": "Task created", "task": task.to_json()}, status_code=201)


@router.get("")
async def list_tasks(store: StoreDep):
    """List every task as a bare JSON array."""
    with tracer.start_as_current_span("task.list") as span:
        try:
            tasks = await store.find_all()
        except StorageError as exc:
            logger.error("Failed to fetch tasks: %s", exc)
            return error_response("Failed to fetch tasks", 500, exc)

        span.set_attribute("task.count", len(tasks))
        return JSONResponse([task.to_json() for task in tasks])


@router.get("/{task_id}")
async def get_task(task_id: str, store: StoreDep):
    """Get a single task by id."""
    with tracer.start_as_current_span("task.get") as span:
        span.set_attribute("task.id", task_id)
        try:
            task = await store.find_by_id(task_id)
        except StorageError as exc:
            logger.error("Failed to fetch task %s: %s", task_id, exc)
            return error_response("Failed to fetch task", 500, exc)

        if task is None:
            return error_response(TASK_NOT_FOUND, 404)

        return JSONResponse(task.to_json())


@router.put("/{task_id}")
async def update_task(
    task_id: str, store: StoreDep, settings: SettingsDep, payload: Payload = None
):
    """Replace a task's title, description, due date and priority.

    Fields left out of the body are cleared, not kept.
    """
    fields = shape_payload(TaskUpdate, payload, settings)

    with tracer.start_as_current_span("task.update") as span:
        span.set_attribute("task.id", task_id)
        try:
            task = await store.update_by_id(task_id, fields)
        except StorageError as exc:
            logger.error("Failed to update task %s: %s", task_id, exc)
            return error_response("Failed to update task", 500, exc)

        if task is None:
            return error_response(TASK_NOT_FOUND, 404)

        tasks_updated.add(1)
        logger.info("Task updated: %s", task_id)

        return JSONResponse({"message": "Task updated", "task": task.to_json()})


@router.delete("/{task_id}")
async def delete_task(task_id: str, store: StoreDep):
    """Delete a task, returning it as it was."""
    with tracer.start_as_current_span("task.delete") as span:
        span.set_attribute("task.id", task_id)
        try:
            task = await store.delete_by_id(task_id)
        except StorageError as exc:
            logger.error("Failed to delete task %s: %s", task_id, exc)
            return error_response("Failed to delete task", 500, exc)

        if task is None:
            return error_response(TASK_NOT_FOUND, 404)

        tasks_deleted.add(1)
        logger.info("Task deleted: %s", task_id)

        return JSONResponse({"message": "Task deleted", "task": task.to_json()})
