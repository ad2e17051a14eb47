from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tasktracker.errors import StoreError
from tasktracker.models.task import Task
from tasktracker.schemas.task import TaskListParams


logger = logging.getLogger(__name__)


class TaskRepository:
    """Owner-scoped reads and writes against the tasks table.

    Every statement carries `owner_id == <owner>` in its WHERE clause, so a
    task owned by someone else behaves exactly like a missing one. Mutations
    are single UPDATE/DELETE ... RETURNING statements rather than
    read-then-write, leaving concurrent writers to the database's row locking.

    Store failures surface as StoreError; nothing is retried here.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, *, owner_id: UUID, values: dict[str, Any]) -> Task:
        task = Task(**values, owner_id=owner_id)
        try:
            async with self._session_factory() as session:
                session.add(task)
                await session.commit()
                # Pull server-side defaults (timestamps).
                await session.refresh(task)
        except SQLAlchemyError as e:
            logger.exception("task insert failed owner_id=%s", owner_id)
            raise StoreError() from e
        return task

    async def get_multi(self, *, owner_id: UUID, params: TaskListParams) -> list[Task]:
        stmt = select(Task).where(Task.owner_id == owner_id)

        if params.completed is not None:
            stmt = stmt.where(Task.completed == params.completed)

        if params.from_date is not None:
            stmt = stmt.where(Task.date >= params.from_date)

        if params.to_date is not None:
            stmt = stmt.where(Task.date <= params.to_date)

        if params.sort is not None:
            sort_col = getattr(Task, params.sort.column)
            if params.sort.descending:
                stmt = stmt.order_by(sort_col.desc(), Task.id.desc())
            else:
                stmt = stmt.order_by(sort_col.asc(), Task.id.asc())

        if params.skip:
            stmt = stmt.offset(params.skip)

        if params.limit:
            stmt = stmt.limit(params.limit)

        try:
            async with self._session_factory() as session:
                res = await session.execute(stmt)
                return list(res.scalars().all())
        except SQLAlchemyError as e:
            logger.exception("task list failed owner_id=%s", owner_id)
            raise StoreError() from e

    async def get(self, *, owner_id: UUID, task_id: UUID) -> Task | None:
        stmt = select(Task).where(Task.id == task_id, Task.owner_id == owner_id)
        try:
            async with self._session_factory() as session:
                res = await session.execute(stmt)
                return res.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.exception("task lookup failed task_id=%s", task_id)
            raise StoreError() from e

    async def update(self, *, owner_id: UUID, task_id: UUID, changes: dict[str, Any]) -> Task | None:
        """Apply `changes` and return the updated row, or None if not owned/missing."""

        stmt = (
            update(Task)
            .where(Task.id == task_id, Task.owner_id == owner_id)
            .values(**changes, updated_at=func.now())
            .returning(Task)
        )
        try:
            async with self._session_factory() as session:
                res = await session.execute(stmt)
                task = res.scalar_one_or_none()
                await session.commit()
                return task
        except SQLAlchemyError as e:
            logger.exception("task update failed task_id=%s", task_id)
            raise StoreError() from e

    async def delete(self, *, owner_id: UUID, task_id: UUID) -> Task | None:
        stmt = (
            delete(Task)
            .where(Task.id == task_id, Task.owner_id == owner_id)
            .returning(Task)
        )
        try:
            async with self._session_factory() as session:
                res = await session.execute(stmt)
                task = res.scalar_one_or_none()
                await session.commit()
                return task
        except SQLAlchemyError as e:
            logger.exception("task delete failed task_id=%s", task_id)
            raise StoreError() from e

    async def delete_many(self, *, owner_id: UUID, task_ids: Iterable[UUID]) -> int:
        ids = list(task_ids)
        if not ids:
            return 0

        stmt = delete(Task).where(Task.id.in_(ids), Task.owner_id == owner_id)
        try:
            async with self._session_factory() as session:
                res = await session.execute(stmt)
                await session.commit()
                return int(res.rowcount or 0)
        except SQLAlchemyError as e:
            logger.exception("task batch delete failed owner_id=%s", owner_id)
            raise StoreError() from e
