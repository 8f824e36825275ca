"""API routers."""

from task_manager.routes.tasks import router as tasks_router


__all__ = ["tasks_router"]
