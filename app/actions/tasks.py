"""Form submission handlers for task mutations.

Each handler validates the submitted form, applies the change through the
repository, invalidates the cached task data and returns a ``Redirect``.
Validation failures return ``FormErrors`` without touching the store; store
failures are logged and returned as a generic ``submit`` error.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from pydantic import ValidationError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.cache.invalidation import invalidate_task_cache
from app.core.exceptions import StoreError, TaskNotFoundError
from app.models import TaskCreate, TaskUpdate, field_errors
from app.repositories.task_repository import TaskRepository

logger = logging.getLogger(__name__)

# form field -> model field
_FORM_FIELDS = {
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "assignee": "assignee",
    "dueDate": "due_date",
}


@dataclass(frozen=True)
class Redirect:
    location: str


@dataclass(frozen=True)
class FormErrors:
    errors: dict[str, list[str]] = field(default_factory=dict)


ActionResult = Union[Redirect, FormErrors]


def _clean(form: Mapping[str, Any], name: str) -> Any:
    value = form.get(name)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _form_fields(form: Mapping[str, Any]) -> dict[str, Any]:
    data = {}
    for form_name, model_name in _FORM_FIELDS.items():
        value = _clean(form, form_name)
        if value is not None:
            data[model_name] = value
    return data


def _submit_error(verb: str) -> FormErrors:
    return FormErrors({"submit": [f"Failed to {verb} task. Please try again."]})


async def create_task_action(form: Mapping[str, Any], db: AsyncSession) -> ActionResult:
    try:
        data = TaskCreate.model_validate(_form_fields(form))
    except ValidationError as e:
        return FormErrors(field_errors(e))

    try:
        task = await TaskRepository.create(db, data)
    except (StoreError, TaskNotFoundError):
        logger.exception("Failed to create task", extra={"event": "task.create.failed"})
        return _submit_error("create")

    await invalidate_task_cache(task.id)
    logger.info("task.create", extra={"event": "task.create", "task_id": task.id})
    return Redirect(f"/tasks/{task.id}")


async def update_task_action(form: Mapping[str, Any], db: AsyncSession) -> ActionResult:
    payload = _form_fields(form)
    task_id = _clean(form, "taskId")
    if task_id is not None:
        payload["id"] = task_id

    try:
        data = TaskUpdate.model_validate(payload)
    except ValidationError as e:
        return FormErrors(field_errors(e))

    try:
        task = await TaskRepository.update(db, data.id, data)
    except (StoreError, TaskNotFoundError):
        logger.exception(
            "Failed to update task",
            extra={"event": "task.update.failed", "task_id": data.id},
        )
        return _submit_error("update")

    await invalidate_task_cache(task.id)
    logger.info("task.update", extra={"event": "task.update", "task_id": task.id})
    return Redirect(f"/tasks/{task.id}")


def _task_ref(form: Mapping[str, Any]) -> TaskUpdate:
    task_id = _clean(form, "taskId")
    return TaskUpdate.model_validate({} if task_id is None else {"id": task_id})


async def delete_task_action(form: Mapping[str, Any], db: AsyncSession) -> ActionResult:
    try:
        ref = _task_ref(form)
    except ValidationError as e:
        return FormErrors(field_errors(e))

    try:
        await TaskRepository.delete(db, ref.id)
    except (StoreError, TaskNotFoundError):
        logger.exception(
            "Failed to delete task",
            extra={"event": "task.delete.failed", "task_id": ref.id},
        )
        return _submit_error("delete")

    await invalidate_task_cache(ref.id)
    logger.info("task.delete", extra={"event": "task.delete", "task_id": ref.id})
    return Redirect("/tasks")


async def toggle_task_action(form: Mapping[str, Any], db: AsyncSession) -> ActionResult:
    try:
        ref = _task_ref(form)
    except ValidationError as e:
        return FormErrors(field_errors(e))

    try:
        task = await TaskRepository.toggle_completed(db, ref.id)
    except (StoreError, TaskNotFoundError):
        logger.exception(
            "Failed to toggle task",
            extra={"event": "task.toggle.failed", "task_id": ref.id},
        )
        return _submit_error("toggle")

    await invalidate_task_cache(task.id)
    logger.info(
        "task.toggle",
        extra={"event": "task.toggle", "task_id": task.id, "completed": task.completed},
    )
    return Redirect(f"/tasks/{task.id}")
