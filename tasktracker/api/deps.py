from __future__ import annotations

import uuid

from fastapi import HTTPException, Request, status

from tasktracker.config import settings
from tasktracker.services.task_service import TaskService


def get_current_owner(request: Request) -> uuid.UUID:
    """Identity of the caller, as forwarded by the authenticating gateway.

    Credentials are checked upstream; this only trusts the forwarded user id.
    """

    raw = request.headers.get(settings.owner_header)
    if not raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please authenticate.")

    try:
        return uuid.UUID(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please authenticate.")


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service
