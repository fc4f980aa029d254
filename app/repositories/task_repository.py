"""Task repository.

Data access layer for Task rows. Every record leaving the repository is
re-validated as ``TaskRead``; driver failures surface as ``StoreError`` and a
missing id on a write surfaces as ``TaskNotFoundError``.
"""

from contextlib import asynccontextmanager
from typing import Any, Mapping

from pydantic import ValidationError
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.exceptions import StoreError, TaskNotFoundError, ValidationException
from app.models import (
    SORT_COLUMNS,
    Task,
    TaskCreate,
    TaskPatch,
    TaskPriority,
    TaskRead,
    TaskStatus,
    field_errors,
    get_utc_now,
)

_PRIORITY_RANK = case(
    {TaskPriority.low: 0, TaskPriority.medium: 1, TaskPriority.high: 2},
    value=Task.priority,
)

_FILTERABLE = frozenset(
    ("id", "title", "status", "priority", "assignee", "due_date", "completed")
)


@asynccontextmanager
async def _store_errors(db: AsyncSession, operation: str):
    try:
        yield
    except SQLAlchemyError as e:
        await db.rollback()
        raise StoreError(operation) from e


def _filtered(query, where: Mapping[str, Any] | None):
    for column, value in (where or {}).items():
        if column not in _FILTERABLE:
            raise ValueError(f"Cannot filter tasks by {column!r}")
        query = query.where(getattr(Task, column) == value)
    return query


def _ordering(field: str, order: str) -> list:
    column = SORT_COLUMNS.get(field, field)
    if column == "priority":
        expr = _PRIORITY_RANK
    elif column in SORT_COLUMNS.values():
        expr = getattr(Task, column)
    else:
        raise ValueError(f"Cannot sort tasks by {field!r}")
    if order == "asc":
        return [expr.asc(), Task.id.asc()]
    if order == "desc":
        return [expr.desc(), Task.id.desc()]
    raise ValueError(f"Unknown sort order {order!r}")


def _to_read(row: Task) -> TaskRead:
    return TaskRead.model_validate(row.model_dump())


class TaskRepository:
    @staticmethod
    async def find_many(
        db: AsyncSession,
        where: Mapping[str, Any] | None = None,
        order_by: tuple[str, str] | None = None,
        take: int | None = None,
        skip: int | None = None,
    ) -> list[TaskRead]:
        """Filter, sort and paginate tasks; newest first by default."""
        field, order = order_by or ("createdAt", "desc")
        query = _filtered(select(Task), where).order_by(*_ordering(field, order))
        if skip:
            query = query.offset(skip)
        if take is not None:
            query = query.limit(take)

        async with _store_errors(db, "find_many"):
            result = await db.exec(query)
            rows = result.all()
        return [_to_read(row) for row in rows]

    @staticmethod
    async def find_by_id(db: AsyncSession, task_id: int) -> TaskRead | None:
        async with _store_errors(db, "find_by_id"):
            row = await db.get(Task, task_id)
        return _to_read(row) if row else None

    @staticmethod
    async def find_by_status(db: AsyncSession, status: TaskStatus) -> list[TaskRead]:
        return await TaskRepository.find_many(db, {"status": status})

    @staticmethod
    async def find_by_priority(
        db: AsyncSession, priority: TaskPriority
    ) -> list[TaskRead]:
        return await TaskRepository.find_many(db, {"priority": priority})

    @staticmethod
    async def find_by_assignee(db: AsyncSession, assignee: str) -> list[TaskRead]:
        return await TaskRepository.find_many(db, {"assignee": assignee})

    @staticmethod
    async def find_completed(db: AsyncSession) -> list[TaskRead]:
        return await TaskRepository.find_many(db, {"completed": True})

    @staticmethod
    async def find_incomplete(db: AsyncSession) -> list[TaskRead]:
        return await TaskRepository.find_many(db, {"completed": False})

    @staticmethod
    async def count(db: AsyncSession, where: Mapping[str, Any] | None = None) -> int:
        query = _filtered(select(func.count(Task.id)), where)
        async with _store_errors(db, "count"):
            result = await db.exec(query)
            return result.one()

    @staticmethod
    async def exists(db: AsyncSession, task_id: int) -> bool:
        return await TaskRepository.count(db, {"id": task_id}) > 0

    @staticmethod
    async def create(db: AsyncSession, data: TaskCreate) -> TaskRead:
        now = get_utc_now()
        task = Task(
            **data.model_dump(),
            created_at=now,
            updated_at=now,
        )
        async with _store_errors(db, "create"):
            db.add(task)
            await db.commit()
            await db.refresh(task)
        return _to_read(task)

    @staticmethod
    async def update(
        db: AsyncSession, task_id: int, data: TaskPatch | Mapping[str, Any]
    ) -> TaskRead:
        """Apply the explicitly set fields of ``data``; advances updated_at."""
        if not isinstance(data, TaskPatch):
            try:
                data = TaskPatch.model_validate(data)
            except ValidationError as e:
                raise ValidationException(field_errors(e)) from e

        async with _store_errors(db, "update"):
            task = await db.get(Task, task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            task.sqlmodel_update(data.changes())
            task.updated_at = get_utc_now()
            await db.commit()
            await db.refresh(task)
        return _to_read(task)

    @staticmethod
    async def update_status(
        db: AsyncSession, task_id: int, status: TaskStatus
    ) -> TaskRead:
        return await TaskRepository.update(db, task_id, {"status": status})

    @staticmethod
    async def update_priority(
        db: AsyncSession, task_id: int, priority: TaskPriority
    ) -> TaskRead:
        return await TaskRepository.update(db, task_id, {"priority": priority})

    @staticmethod
    async def toggle_completed(db: AsyncSession, task_id: int) -> TaskRead:
        # read-then-write; concurrent togglers race and the last write wins
        task = await TaskRepository.find_by_id(db, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return await TaskRepository.update(
            db, task_id, {"completed": not task.completed}
        )

    @staticmethod
    async def delete(db: AsyncSession, task_id: int) -> None:
        async with _store_errors(db, "delete"):
            task = await db.get(Task, task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            await db.delete(task)
            await db.commit()

    @staticmethod
    async def delete_many(db: AsyncSession, where: Mapping[str, Any]) -> int:
        """Delete every task matching ``where``; returns the number removed."""
        async with _store_errors(db, "delete_many"):
            result = await db.exec(_filtered(select(Task), where))
            rows = result.all()
            for row in rows:
                await db.delete(row)
            await db.commit()
        return len(rows)
