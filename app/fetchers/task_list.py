"""Task list reads through two cache strategies.

``get_memoized_task_list`` is memoized per request and reads
``GET /api/cache/tasks`` through the data cache, which keeps a payload for
the revalidation window. ``get_no_store_task_list`` skips both and fetches on
every call. Both attach diagnostics so the two can be compared side by side.
"""

import logging
from urllib.parse import urlencode
from uuid import uuid4

import httpx
from pydantic import BaseModel

from app.cache.keys import task_list_key
from app.cache.layer import cache_layer
from app.cache.request_memo import request_memoized
from app.core.config import get_settings
from app.core.exceptions import TaskListFetchError
from app.models import TaskPriority, TaskRead, TaskSortField, TaskSortOrder, TaskStatus

logger = logging.getLogger(__name__)

TASK_CACHE_PATH = "/api/cache/tasks"


class TaskListFilters(BaseModel):
    status: TaskStatus | None = None
    priority: TaskPriority | None = None


class TaskListSort(BaseModel):
    field: TaskSortField = "createdAt"
    order: TaskSortOrder = "desc"


class TaskListQuery(BaseModel):
    where: TaskListFilters | None = None
    sort: TaskListSort = TaskListSort()


class CacheDiagnostics(BaseModel):
    execution_id: str
    executed_at: str
    cache_key: str
    revalidate_in_seconds: int


class TaskListResult(BaseModel):
    tasks: list[TaskRead]
    diagnostics: CacheDiagnostics


def build_query_string(query: TaskListQuery) -> str:
    params: dict[str, str] = {}
    if query.where and query.where.status:
        params["status"] = query.where.status.value
    if query.where and query.where.priority:
        params["priority"] = query.where.priority.value
    params["sortBy"] = query.sort.field
    params["sortOrder"] = query.sort.order
    return urlencode(params)


async def _fetch_payload(
    client: httpx.AsyncClient, query_string: str, no_store: bool = False
) -> dict:
    url = f"{TASK_CACHE_PATH}?{query_string}" if query_string else TASK_CACHE_PATH
    headers = {"Cache-Control": "no-store"} if no_store else None
    response = await client.get(url, headers=headers)
    if response.is_error:
        raise TaskListFetchError(response.status_code)
    return response.json()


def _to_result(payload: dict, query_string: str, revalidate: int) -> TaskListResult:
    return TaskListResult(
        tasks=[TaskRead.model_validate(task) for task in payload["tasks"]],
        diagnostics=CacheDiagnostics(
            execution_id=str(uuid4()),
            executed_at=payload["generatedAt"],
            cache_key=query_string or "all",
            revalidate_in_seconds=revalidate,
        ),
    )


@request_memoized(lambda serialized, *_, **__: serialized)
async def _memoized_task_query(
    serialized: str, client: httpx.AsyncClient
) -> TaskListResult:
    query = TaskListQuery.model_validate_json(serialized)
    query_string = build_query_string(query)
    window = get_settings().data_cache_revalidate_seconds

    async def loader():
        return await _fetch_payload(client, query_string)

    payload = await cache_layer.get(
        task_list_key(query_string), loader=loader, l2_ttl=window
    )
    logger.debug(
        "task_list.revalidated",
        extra={"cache_key": query_string, "generated_at": payload["generatedAt"]},
    )
    return _to_result(
        payload, query_string, payload.get("cacheWindowSeconds") or window
    )


async def get_memoized_task_list(
    query: TaskListQuery, client: httpx.AsyncClient
) -> TaskListResult:
    return await _memoized_task_query(query.model_dump_json(exclude_none=True), client)


async def get_no_store_task_list(
    query: TaskListQuery, client: httpx.AsyncClient
) -> TaskListResult:
    query_string = build_query_string(query)
    payload = await _fetch_payload(client, query_string, no_store=True)
    return _to_result(payload, query_string, 0)
