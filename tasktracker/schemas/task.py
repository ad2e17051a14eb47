from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


# Field names a PATCH body may carry. The uploaded file travels separately.
UPDATABLE_FIELDS = frozenset({"description", "completed", "image_path"})

# Largest value a BIGINT LIMIT/OFFSET accepts.
MAX_PAGE_VALUE = 2**63 - 1

# sortBy field name -> Task column. camelCase aliases are accepted for clients
# that send the document-style names.
SORTABLE_FIELDS = {
    "description": "description",
    "completed": "completed",
    "date": "date",
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
}


def parse_timestamp(raw: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp or date into an aware UTC datetime.

    Naive values are taken to be UTC. A bare date means midnight of that day.
    Raises ValueError on anything else.
    """

    if isinstance(raw, datetime):
        value = raw
    else:
        # Allow Z suffix.
        value = datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00"))

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError as e:
        # Offsets at the edges of the datetime range can't be shifted to UTC.
        raise ValueError(f"timestamp out of range: {raw}") from e


def parse_completed(raw: str | None) -> bool | None:
    if raw == "true":
        return True
    if raw == "false":
        return False
    return None


def parse_optional_timestamp(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return parse_timestamp(raw)
    except ValueError:
        return None


def parse_non_negative_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if 0 <= value <= MAX_PAGE_VALUE else None


@dataclass(frozen=True)
class SortSpec:
    column: str
    descending: bool = False


def parse_sort(raw: str | None) -> SortSpec | None:
    """Parse `<field>:<direction>`. Unknown fields yield None (store order)."""

    if not raw:
        return None
    field, _, direction = raw.partition(":")
    column = SORTABLE_FIELDS.get(field.strip())
    if column is None:
        return None
    return SortSpec(column=column, descending=direction.strip() == "desc")


@dataclass(frozen=True)
class TaskListParams:
    completed: bool | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    sort: SortSpec | None = None
    limit: int | None = None
    skip: int | None = None

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "TaskListParams":
        limit = parse_non_negative_int(query.get("limit"))
        return cls(
            completed=parse_completed(query.get("completed")),
            from_date=parse_optional_timestamp(query.get("from_date")),
            to_date=parse_optional_timestamp(query.get("to_date")),
            sort=parse_sort(query.get("sortBy")),
            # limit=0 means no limit
            limit=limit or None,
            skip=parse_non_negative_int(query.get("skip")),
        )


def _clean_description(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("description must be a string")
    value = value.strip()
    if not value:
        raise ValueError("description must not be empty")
    return value


class TaskCreate(BaseModel):
    # Unknown keys (including any caller supplied owner) are dropped.
    model_config = ConfigDict(extra="ignore")

    description: str
    completed: bool = False
    date: datetime | None = None

    @field_validator("description", mode="before")
    @classmethod
    def _validate_description(cls, value: Any) -> str:
        return _clean_description(value)

    @field_validator("date", mode="before")
    @classmethod
    def _validate_date(cls, value: Any) -> datetime | None:
        if value is None or value == "":
            return None
        return parse_timestamp(value)


class TaskUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str | None = None
    completed: bool | None = None
    image_path: str | None = None

    @field_validator("description", mode="before")
    @classmethod
    def _validate_description(cls, value: Any) -> str:
        return _clean_description(value)

    @field_validator("completed", mode="before")
    @classmethod
    def _validate_completed(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("completed must be a boolean")
        return value

    @field_validator("image_path", mode="before")
    @classmethod
    def _validate_image_path(cls, value: Any) -> str:
        return "" if value is None else value


class TaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID

    description: str
    completed: bool
    date: datetime
    image_path: str = ""

    created_at: datetime
    updated_at: datetime


class DeleteManyRequest(BaseModel):
    tasks: list[UUID]


class DeletionSummary(BaseModel):
    acknowledged: bool = True
    deleted_count: int
