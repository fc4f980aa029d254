"""Unit tests for the memoized and no-store task list fetchers."""

from datetime import datetime, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from app.cache.invalidation import invalidate_task_cache
from app.cache.request_memo import request_scope
from app.core.exceptions import TaskListFetchError
from app.fetchers.task_list import (
    TaskListFilters,
    TaskListQuery,
    TaskListSort,
    build_query_string,
    get_memoized_task_list,
    get_no_store_task_list,
)
from app.models import TaskPriority, TaskStatus

TASK = {
    "id": 1,
    "title": "Write report",
    "description": None,
    "status": "todo",
    "priority": "high",
    "assignee": None,
    "dueDate": None,
    "completed": False,
    "createdAt": "2026-01-01T00:00:00Z",
    "updatedAt": "2026-01-01T00:00:00Z",
}


class FakeEndpoint:
    """Stands in for GET /api/cache/tasks and records every request."""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"detail": "boom"})
        return httpx.Response(
            200,
            json={
                "generatedAt": datetime.now(timezone.utc).isoformat(),
                "cacheWindowSeconds": 15,
                "sort": {"field": "createdAt", "order": "desc"},
                "filters": {},
                "tasks": [TASK],
            },
        )

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def endpoint() -> FakeEndpoint:
    return FakeEndpoint()


@pytest.fixture
async def http_client(endpoint: FakeEndpoint):
    transport = httpx.MockTransport(endpoint)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestBuildQueryString:
    def test_defaults_only_carry_sort(self) -> None:
        assert build_query_string(TaskListQuery()) == "sortBy=createdAt&sortOrder=desc"

    def test_filters_come_first(self) -> None:
        query = TaskListQuery(
            where=TaskListFilters(status=TaskStatus.done, priority=TaskPriority.low),
            sort=TaskListSort(field="dueDate", order="asc"),
        )
        assert parse_qs(build_query_string(query)) == {
            "status": ["done"],
            "priority": ["low"],
            "sortBy": ["dueDate"],
            "sortOrder": ["asc"],
        }


class TestMemoizedTaskList:
    async def test_repeated_calls_share_one_fetch(self, endpoint, http_client) -> None:
        query = TaskListQuery()
        with request_scope():
            first = await get_memoized_task_list(query, http_client)
            second = await get_memoized_task_list(TaskListQuery(), http_client)

        assert first is second
        assert first.diagnostics.execution_id == second.diagnostics.execution_id
        assert endpoint.calls == 1
        assert first.diagnostics.revalidate_in_seconds == 15
        assert first.tasks[0].title == "Write report"

    async def test_different_filters_fetch_separately(
        self, endpoint, http_client
    ) -> None:
        with request_scope():
            await get_memoized_task_list(TaskListQuery(), http_client)
            await get_memoized_task_list(
                TaskListQuery(where=TaskListFilters(status=TaskStatus.todo)),
                http_client,
            )
        assert endpoint.calls == 2
        assert parse_qs(endpoint.requests[1].url.query.decode())["status"] == ["todo"]

    async def test_data_cache_serves_later_requests(
        self, endpoint, http_client
    ) -> None:
        with request_scope():
            first = await get_memoized_task_list(TaskListQuery(), http_client)
        with request_scope():
            second = await get_memoized_task_list(TaskListQuery(), http_client)

        assert endpoint.calls == 1
        assert first is not second
        assert first.diagnostics.execution_id != second.diagnostics.execution_id
        assert first.diagnostics.executed_at == second.diagnostics.executed_at

    async def test_invalidation_forces_refetch(self, endpoint, http_client) -> None:
        with request_scope():
            await get_memoized_task_list(TaskListQuery(), http_client)
        await invalidate_task_cache()
        with request_scope():
            await get_memoized_task_list(TaskListQuery(), http_client)

        assert endpoint.calls == 2

    async def test_cache_key_reflects_query(self, http_client) -> None:
        query = TaskListQuery(where=TaskListFilters(priority=TaskPriority.high))
        result = await get_memoized_task_list(query, http_client)
        assert result.diagnostics.cache_key == build_query_string(query)

    async def test_error_status_raises(self) -> None:
        transport = httpx.MockTransport(FakeEndpoint(status_code=500))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            with pytest.raises(TaskListFetchError) as exc:
                await get_memoized_task_list(TaskListQuery(), c)
        assert exc.value.details["status_code"] == 500


class TestNoStoreTaskList:
    async def test_every_call_fetches(self, endpoint, http_client) -> None:
        with request_scope():
            first = await get_no_store_task_list(TaskListQuery(), http_client)
            second = await get_no_store_task_list(TaskListQuery(), http_client)

        assert endpoint.calls == 2
        assert first is not second
        assert first.diagnostics.execution_id != second.diagnostics.execution_id
        assert first.diagnostics.revalidate_in_seconds == 0
        assert endpoint.requests[0].headers["cache-control"] == "no-store"

    async def test_matches_memoized_payload(self, http_client) -> None:
        with request_scope():
            memoized = await get_memoized_task_list(TaskListQuery(), http_client)
            no_store = await get_no_store_task_list(TaskListQuery(), http_client)
        assert memoized.tasks == no_store.tasks

    async def test_error_status_raises(self) -> None:
        transport = httpx.MockTransport(FakeEndpoint(status_code=503))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            with pytest.raises(TaskListFetchError):
                await get_no_store_task_list(TaskListQuery(), c)
