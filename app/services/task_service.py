from typing import Any, Mapping

from pydantic import ValidationError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.cache.decorators import async_cached, async_cached_expire
from app.cache.invalidation import invalidate_task_cache
from app.cache.keys import task_key
from app.core.exceptions import ValidationException
from app.models import (
    TaskCreate,
    TaskPatch,
    TaskQuery,
    TaskRead,
    TaskUpdate,
    field_errors,
)
from app.repositories.task_repository import TaskRepository


class TaskService:
    @staticmethod
    async def get_tasks(
        db: AsyncSession, query: TaskQuery | Mapping[str, Any] | None = None
    ) -> list[TaskRead]:
        if not isinstance(query, TaskQuery):
            try:
                query = TaskQuery.model_validate(query or {})
            except ValidationError as e:
                raise ValidationException(field_errors(e)) from e
        return await TaskRepository.find_many(
            db,
            query.filters() or None,
            order_by=(query.sort_by, query.sort_order),
            take=query.limit,
            skip=query.offset,
        )

    @staticmethod
    @async_cached(lambda task_id, *_, **__: task_key(task_id), l2_ttl=120, model=TaskRead)
    async def get_task(task_id: int, db: AsyncSession) -> TaskRead | None:
        return await TaskRepository.find_by_id(db, task_id)

    @staticmethod
    async def create_task(task_data: TaskCreate, db: AsyncSession) -> TaskRead:
        task = await TaskRepository.create(db, task_data)
        await invalidate_task_cache()
        return task

    # list keys are dropped here, the task key by the decorator
    @staticmethod
    @async_cached_expire(lambda task_id, *_, **__: task_key(task_id))
    async def update_task(
        task_id: int, task_data: TaskPatch, db: AsyncSession
    ) -> TaskRead:
        try:
            update = TaskUpdate(id=task_id, **task_data.changes())
        except ValidationError as e:
            raise ValidationException(field_errors(e)) from e
        task = await TaskRepository.update(db, update.id, update)
        await invalidate_task_cache()
        return task

    @staticmethod
    @async_cached_expire(lambda task_id, *_, **__: task_key(task_id))
    async def delete_task(task_id: int, db: AsyncSession) -> None:
        await TaskRepository.delete(db, task_id)
        await invalidate_task_cache()

    @staticmethod
    @async_cached_expire(lambda task_id, *_, **__: task_key(task_id))
    async def toggle_task(task_id: int, db: AsyncSession) -> TaskRead:
        task = await TaskRepository.toggle_completed(db, task_id)
        await invalidate_task_cache()
        return task
