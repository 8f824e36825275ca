"""Task schemas for request payloads and stored documents."""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


Priority = Literal["Low", "Medium", "High"]

DEFAULT_PRIORITY: Priority = "Medium"

# Mutable fields, by their wire (and document) names.
TASK_FIELDS = ("title", "description", "dueDate", "priority")


class TaskFields(BaseModel):
    """Mutable task fields shared by create and update payloads."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(min_length=1)
    description: str | None = None
    due_date: datetime | None = Field(default=None, alias="dueDate")
    priority: Priority | None = None

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, value: datetime | None) -> datetime | None:
        """Store dates as UTC with millisecond precision, the resolution of a BSON date."""
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        else:
            value = value.astimezone(UTC)
        return value.replace(microsecond=value.microsecond // 1000 * 1000)


class TaskCreate(TaskFields):
    """Payload for creating a task. Priority falls back to Medium."""

    priority: Priority = DEFAULT_PRIORITY

    @field_validator("priority", mode="before")
    @classmethod
    def default_priority(cls, value: Any) -> Any:
        return DEFAULT_PRIORITY if value is None else value


class TaskUpdate(TaskFields):
    """Payload for replacing a task.

    Every mutable field is replaced; an omitted optional field is cleared.
    """


class StoredTask(BaseModel):
    """A task as persisted, including its store-assigned id."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str
    description: str | None = None
    due_date: datetime | None = Field(default=None, alias="dueDate")
    priority: Priority | None = None

    def to_json(self) -> dict[str, Any]:
        """Serialize with wire field names."""
        return self.model_dump(mode="json", by_alias=True)
