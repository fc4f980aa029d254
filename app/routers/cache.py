from enum import Enum
from typing import TypeVar

from fastapi import APIRouter, Depends, Request, Response
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import SettingsDep
from app.database import get_db
from app.models import SORT_COLUMNS, TaskPriority, TaskStatus, get_utc_now
from app.repositories.task_repository import TaskRepository

router = APIRouter(prefix="/api/cache", tags=["cache"])

E = TypeVar("E", bound=Enum)


def _parse_enum(enum_cls: type[E], raw: str | None) -> E | None:
    # invalid values are ignored rather than rejected
    try:
        return enum_cls(raw)
    except ValueError:
        return None


@router.get("/tasks")
async def get_cached_tasks(
    request: Request,
    response: Response,
    settings: SettingsDep,
    db: AsyncSession = Depends(get_db),
):
    """Task listing read by the cached query facade."""
    params = request.query_params

    filters = {}
    task_status = _parse_enum(TaskStatus, params.get("status"))
    if task_status:
        filters["status"] = task_status
    priority = _parse_enum(TaskPriority, params.get("priority"))
    if priority:
        filters["priority"] = priority

    sort_field = params.get("sortBy")
    if sort_field not in SORT_COLUMNS:
        sort_field = "createdAt"
    sort_order = params.get("sortOrder")
    if sort_order not in ("asc", "desc"):
        sort_order = "desc"

    tasks = await TaskRepository.find_many(
        db, filters or None, order_by=(sort_field, sort_order)
    )

    window = settings.data_cache_revalidate_seconds
    response.headers["Cache-Control"] = (
        f"public, s-maxage={window}, stale-while-revalidate"
    )
    return {
        "generatedAt": get_utc_now().isoformat().replace("+00:00", "Z"),
        "cacheWindowSeconds": window,
        "sort": {"field": sort_field, "order": sort_order},
        "filters": {key: value.value for key, value in filters.items()},
        "tasks": [task.model_dump(mode="json", by_alias=True) for task in tasks],
    }
