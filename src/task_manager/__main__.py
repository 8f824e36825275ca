"""Run the task manager under uvicorn: ``python -m task_manager``."""

import uvicorn

from task_manager.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "task_manager.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
