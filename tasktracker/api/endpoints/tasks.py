from __future__ import annotations

import json
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from starlette.datastructures import UploadFile

from tasktracker.api.deps import get_current_owner, get_task_service
from tasktracker.config import settings
from tasktracker.errors import TaskValidationError
from tasktracker.schemas.task import DeletionSummary, TaskListParams, TaskRead
from tasktracker.services.image_store import ImageUpload
from tasktracker.services.task_service import TaskService


router = APIRouter(tags=["tasks"])

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        raise TaskValidationError("Request body must be valid JSON")


async def _read_task_payload(
    request: Request,
    service: TaskService,
) -> tuple[dict[str, Any], ImageUpload | None]:
    """Split a task request body into plain fields and an optional image.

    Accepts JSON bodies and form posts. In a multipart form the file under
    `settings.image_field` is validated here, before the service runs.
    """

    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(_FORM_TYPES):
        payload = await _read_json(request)
        if not isinstance(payload, dict):
            raise TaskValidationError("Request body must be an object")
        return payload, None

    fields: dict[str, Any] = {}
    image: ImageUpload | None = None

    async with request.form() as form:
        for key, value in form.multi_items():
            if not isinstance(value, UploadFile):
                fields[key] = value
                continue
            if key != settings.image_field:
                raise TaskValidationError(f"Unexpected file field: {key}")
            image = await service.images.read_upload(value, field_name=key)

    return fields, image


@router.post("/tasks", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task_endpoint(
    request: Request,
    owner_id: uuid.UUID = Depends(get_current_owner),
    service: TaskService = Depends(get_task_service),
) -> TaskRead:
    fields, image = await _read_task_payload(request, service)
    task = await service.create(owner_id, fields, image)
    return TaskRead.model_validate(task)


# GET /tasks?completed=true
# GET /tasks?limit=10&skip=20
# GET /tasks?sortBy=created_at:desc
# GET /tasks?from_date=2024-01-01&to_date=2024-01-31
@router.get("/tasks", response_model=list[TaskRead])
async def list_tasks_endpoint(
    completed: str | None = Query(None, description="'true' or 'false'; anything else is ignored"),
    from_date: str | None = Query(None, description="Filter: date >= from_date (ISO-8601)"),
    to_date: str | None = Query(None, description="Filter: date <= to_date (ISO-8601)"),
    sort_by: str | None = Query(None, alias="sortBy", description="<field>:<asc|desc>"),
    limit: str | None = Query(None, description="Max tasks to return"),
    skip: str | None = Query(None, description="Tasks to skip"),
    owner_id: uuid.UUID = Depends(get_current_owner),
    service: TaskService = Depends(get_task_service),
) -> list[TaskRead]:
    params = TaskListParams.from_query(
        {
            "completed": completed,
            "from_date": from_date,
            "to_date": to_date,
            "sortBy": sort_by,
            "limit": limit,
            "skip": skip,
        }
    )
    tasks = await service.list(owner_id, params)
    return [TaskRead.model_validate(t) for t in tasks]


@router.get("/tasks/{task_id}", response_model=TaskRead)
async def get_task_endpoint(
    task_id: str,
    owner_id: uuid.UUID = Depends(get_current_owner),
    service: TaskService = Depends(get_task_service),
) -> TaskRead:
    task = await service.get_one(owner_id, task_id)
    return TaskRead.model_validate(task)


@router.patch("/tasks/{task_id}", response_model=TaskRead)
async def patch_task_endpoint(
    task_id: str,
    request: Request,
    owner_id: uuid.UUID = Depends(get_current_owner),
    service: TaskService = Depends(get_task_service),
) -> TaskRead:
    fields, image = await _read_task_payload(request, service)
    task = await service.update(owner_id, task_id, fields, image)
    return TaskRead.model_validate(task)


@router.delete("/tasks/{task_id}", response_model=TaskRead)
async def delete_task_endpoint(
    task_id: str,
    owner_id: uuid.UUID = Depends(get_current_owner),
    service: TaskService = Depends(get_task_service),
) -> TaskRead:
    task = await service.delete_one(owner_id, task_id)
    return TaskRead.model_validate(task)


@router.post("/delete-multi-tasks", response_model=DeletionSummary)
async def delete_multi_tasks_endpoint(
    request: Request,
    owner_id: uuid.UUID = Depends(get_current_owner),
    service: TaskService = Depends(get_task_service),
) -> DeletionSummary:
    payload = await _read_json(request)
    return await service.delete_many(owner_id, payload)
