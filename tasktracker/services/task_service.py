from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from tasktracker.crud.task import TaskRepository
from tasktracker.errors import TaskNotFound, TaskValidationError
from tasktracker.models.task import Task
from tasktracker.schemas.task import (
    UPDATABLE_FIELDS,
    DeleteManyRequest,
    DeletionSummary,
    TaskCreate,
    TaskListParams,
    TaskUpdate,
)
from tasktracker.services.image_store import ImageStore, ImageUpload


logger = logging.getLogger(__name__)


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def _parse_task_id(task_id: str | UUID) -> UUID:
    if isinstance(task_id, UUID):
        return task_id
    try:
        return UUID(task_id)
    except ValueError:
        # A malformed id can't match anything the caller owns.
        raise TaskNotFound()


class TaskService:
    """Task query and mutation rules on top of TaskRepository.

    - The owner always comes from the authenticated caller, never the body.
    - Input is validated before anything is written, including image blobs.
    - Lookups by id are scoped to the owner; foreign and missing tasks both
      raise TaskNotFound.
    """

    def __init__(self, repository: TaskRepository, images: ImageStore) -> None:
        self._repository = repository
        self.images = images

    async def create(
        self,
        owner_id: UUID,
        fields: Mapping[str, Any],
        image: ImageUpload | None = None,
    ) -> Task:
        try:
            obj_in = TaskCreate.model_validate(dict(fields))
        except ValidationError as e:
            raise TaskValidationError(_format_errors(e)) from e

        values: dict[str, Any] = {
            "description": obj_in.description,
            "completed": obj_in.completed,
            "date": obj_in.date or datetime.now(timezone.utc),
            "image_path": "",
        }
        if image is not None:
            values["image_path"] = await self.images.save(image)

        task = await self._repository.create(owner_id=owner_id, values=values)
        logger.info("task created task_id=%s owner_id=%s", task.id, owner_id)
        return task

    async def list(self, owner_id: UUID, params: TaskListParams) -> list[Task]:
        return await self._repository.get_multi(owner_id=owner_id, params=params)

    async def get_one(self, owner_id: UUID, task_id: str | UUID) -> Task:
        task = await self._repository.get(owner_id=owner_id, task_id=_parse_task_id(task_id))
        if task is None:
            raise TaskNotFound()
        return task

    async def update(
        self,
        owner_id: UUID,
        task_id: str | UUID,
        fields: Mapping[str, Any],
        image: ImageUpload | None = None,
    ) -> Task:
        """Apply an allow-listed partial update.

        Any key outside UPDATABLE_FIELDS rejects the whole request. An uploaded
        image wins over an `image_path` value in the body.
        """

        if not set(fields).issubset(UPDATABLE_FIELDS):
            raise TaskValidationError("Invalid updates")

        try:
            obj_in = TaskUpdate.model_validate(dict(fields))
        except ValidationError as e:
            raise TaskValidationError(_format_errors(e)) from e

        tid = _parse_task_id(task_id)
        changes = obj_in.model_dump(exclude_unset=True)
        if image is not None:
            changes["image_path"] = self.images.path_for(image)

        task = await self._repository.update(owner_id=owner_id, task_id=tid, changes=changes)
        if task is None:
            raise TaskNotFound()

        # Only the owner of the task gets to write the blob.
        if image is not None:
            await self.images.save(image)

        logger.info("task updated task_id=%s fields=%s", task.id, sorted(changes))
        return task

    async def delete_one(self, owner_id: UUID, task_id: str | UUID) -> Task:
        task = await self._repository.delete(owner_id=owner_id, task_id=_parse_task_id(task_id))
        if task is None:
            raise TaskNotFound()

        logger.info("task deleted task_id=%s owner_id=%s", task.id, owner_id)
        return task

    async def delete_many(self, owner_id: UUID, payload: Any) -> DeletionSummary:
        """Delete the caller's tasks among `payload["tasks"]`.

        Ids that are unknown or owned by someone else are skipped silently.
        """

        try:
            req = DeleteManyRequest.model_validate(payload)
        except ValidationError as e:
            raise TaskValidationError(_format_errors(e)) from e

        deleted = await self._repository.delete_many(owner_id=owner_id, task_ids=req.tasks)
        logger.info("tasks deleted owner_id=%s requested=%s deleted=%s", owner_id, len(req.tasks), deleted)
        return DeletionSummary(deleted_count=deleted)
