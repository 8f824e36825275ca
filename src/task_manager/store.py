"""Storage gateway for tasks kept in a MongoDB collection.

Every operation is a single awaited driver call. Driver failures, malformed
ids and schema violations all surface as ``StorageError``; a missing task
is reported as ``None``, never as an error.
"""

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import PyMongoError

from task_manager.models import StoredTask, TaskCreate, TaskFields, TaskUpdate


logger = logging.getLogger(__name__)


class StorageError(Exception):
    """The store is unreachable or rejected the operation."""


@contextmanager
def _storage_errors() -> Iterator[None]:
    try:
        yield
    except InvalidId as exc:
        raise StorageError(str(exc)) from exc
    except PyMongoError as exc:
        logger.warning("MongoDB operation failed: %s", exc)
        raise StorageError(str(exc)) from exc


def _describe(exc: ValidationError) -> str:
    return ", ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors(include_url=False)
    )


def _to_document(schema: type[TaskFields], fields: Mapping[str, Any]) -> dict[str, Any]:
    """Enforce the task schema and build the document to persist.

    Unset optional fields are left out of the document entirely.
    """
    try:
        task = schema.model_validate(dict(fields))
    except ValidationError as exc:
        raise StorageError(f"Task validation failed: {_describe(exc)}") from exc
    return task.model_dump(by_alias=True, exclude_none=True)


def _to_stored(document: Mapping[str, Any]) -> StoredTask:
    try:
        return StoredTask.model_validate({**document, "id": str(document["_id"])})
    except ValidationError as exc:
        raise StorageError(f"Stored task is malformed: {_describe(exc)}") from exc


class TaskStore:
    """CRUD access to the task collection."""

    def __init__(self, collection: AsyncCollection) -> None:
        self._collection = collection

    async def insert(self, fields: Mapping[str, Any]) -> StoredTask:
        """Persist a new task and return it with its assigned id."""
        document = _to_document(TaskCreate, fields)
        with _storage_errors():
            # insert_one sets document["_id"]
            await self._collection.insert_one(document)
        return _to_stored(document)

    async def find_all(self) -> list[StoredTask]:
        """Return every task in the collection's natural order."""
        with _storage_errors():
            documents = await self._collection.find({}).to_list()
        return [_to_stored(document) for document in documents]

    async def find_by_id(self, task_id: str) -> StoredTask | None:
        with _storage_errors():
            document = await self._collection.find_one({"_id": ObjectId(task_id)})
        return _to_stored(document) if document is not None else None

    async def update_by_id(self, task_id: str, fields: Mapping[str, Any]) -> StoredTask | None:
        """Replace all mutable fields of a task.

        Returns the task as it reads after the replacement, or None when no
        task has the given id.
        """
        document = _to_document(TaskUpdate, fields)
        with _storage_errors():
            updated = await self._collection.find_one_and_replace(
                {"_id": ObjectId(task_id)},
                document,
                return_document=ReturnDocument.AFTER,
            )
        return _to_stored(updated) if updated is not None else None

    async def delete_by_id(self, task_id: str) -> StoredTask | None:
        """Remove a task and return it as it was before deletion."""
        with _storage_errors():
            deleted = await self._collection.find_one_and_delete({"_id": ObjectId(task_id)})
        return _to_stored(deleted) if deleted is not None else None
