"""Repository tests against an in-memory SQLite database."""

import asyncio
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import StoreError, TaskNotFoundError
from app.models import TaskCreate, TaskPatch, TaskPriority, TaskStatus
from app.repositories.task_repository import TaskRepository


async def _create(db, title: str, **fields):
    return await TaskRepository.create(db, TaskCreate(title=title, **fields))


class TestCreate:
    async def test_applies_defaults(self, db_session) -> None:
        task = await _create(db_session, "Minimal Task")
        assert task.id > 0
        assert task.status == TaskStatus.todo
        assert task.priority == TaskPriority.medium
        assert task.completed is False
        assert task.description is None
        assert task.assignee is None
        assert task.due_date is None
        assert task.created_at == task.updated_at

    async def test_keeps_all_fields(self, db_session) -> None:
        task = await _create(
            db_session,
            "Full",
            description="Everything set",
            status=TaskStatus.in_progress,
            priority=TaskPriority.high,
            assignee="dev@example.com",
            due_date=date(2026, 12, 31),
        )
        stored = await TaskRepository.find_by_id(db_session, task.id)
        assert stored == task
        assert stored.due_date == date(2026, 12, 31)
        assert stored.assignee == "dev@example.com"


class TestFindMany:
    async def test_empty_store(self, db_session) -> None:
        assert await TaskRepository.find_many(db_session) == []

    async def test_newest_first_by_default(self, db_session) -> None:
        for title in ("Task 1", "Task 2", "Task 3"):
            await _create(db_session, title)
            await asyncio.sleep(0.002)

        tasks = await TaskRepository.find_many(db_session)
        assert [t.title for t in tasks] == ["Task 3", "Task 2", "Task 1"]

    async def test_filters_by_status_and_priority(self, db_session) -> None:
        await _create(db_session, "a", status=TaskStatus.todo, priority=TaskPriority.high)
        await _create(db_session, "b", status=TaskStatus.done, priority=TaskPriority.high)
        await _create(db_session, "c", status=TaskStatus.todo, priority=TaskPriority.low)

        tasks = await TaskRepository.find_many(
            db_session, {"status": TaskStatus.todo, "priority": TaskPriority.high}
        )
        assert [t.title for t in tasks] == ["a"]
        assert len(await TaskRepository.find_by_status(db_session, TaskStatus.todo)) == 2
        assert len(await TaskRepository.find_by_priority(db_session, TaskPriority.high)) == 2

    async def test_find_by_assignee(self, db_session) -> None:
        await _create(db_session, "mine", assignee="me@example.com")
        await _create(db_session, "theirs", assignee="them@example.com")
        tasks = await TaskRepository.find_by_assignee(db_session, "me@example.com")
        assert [t.title for t in tasks] == ["mine"]

    async def test_priority_sorts_by_rank(self, db_session) -> None:
        await _create(db_session, "medium", priority=TaskPriority.medium)
        await _create(db_session, "high", priority=TaskPriority.high)
        await _create(db_session, "low", priority=TaskPriority.low)

        asc = await TaskRepository.find_many(db_session, order_by=("priority", "asc"))
        desc = await TaskRepository.find_many(db_session, order_by=("priority", "desc"))
        assert [t.title for t in asc] == ["low", "medium", "high"]
        assert [t.title for t in desc] == ["high", "medium", "low"]

    async def test_due_date_sort(self, db_session) -> None:
        await _create(db_session, "later", due_date=date(2026, 6, 1))
        await _create(db_session, "sooner", due_date=date(2026, 1, 1))
        tasks = await TaskRepository.find_many(db_session, order_by=("dueDate", "asc"))
        assert [t.title for t in tasks] == ["sooner", "later"]

    async def test_take_and_skip(self, db_session) -> None:
        for i in range(5):
            await _create(db_session, f"Task {i}")

        page = await TaskRepository.find_many(
            db_session, order_by=("createdAt", "asc"), take=2, skip=1
        )
        assert [t.title for t in page] == ["Task 1", "Task 2"]

    async def test_skip_past_end_is_empty(self, db_session) -> None:
        await _create(db_session, "only")
        assert await TaskRepository.find_many(db_session, skip=5, take=10) == []

    async def test_unknown_filter_rejected(self, db_session) -> None:
        with pytest.raises(ValueError):
            await TaskRepository.find_many(db_session, {"owner": "x"})

    async def test_unknown_sort_rejected(self, db_session) -> None:
        with pytest.raises(ValueError):
            await TaskRepository.find_many(db_session, order_by=("title", "asc"))


class TestFindById:
    async def test_missing_returns_none(self, db_session) -> None:
        assert await TaskRepository.find_by_id(db_session, 999) is None

    async def test_none_after_delete(self, db_session) -> None:
        task = await _create(db_session, "Doomed")
        await TaskRepository.delete(db_session, task.id)
        assert await TaskRepository.find_by_id(db_session, task.id) is None


class TestUpdate:
    async def test_applies_only_given_fields(self, db_session) -> None:
        task = await _create(db_session, "Original", description="keep me")
        await asyncio.sleep(0.002)

        updated = await TaskRepository.update(
            db_session, task.id, TaskPatch(title="Renamed")
        )
        assert updated.title == "Renamed"
        assert updated.description == "keep me"
        assert updated.created_at == task.created_at
        assert updated.updated_at > task.updated_at

    async def test_accepts_mapping(self, db_session) -> None:
        task = await _create(db_session, "x")
        updated = await TaskRepository.update(
            db_session, task.id, {"status": "done"}
        )
        assert updated.status == TaskStatus.done

    async def test_status_and_priority_helpers(self, db_session) -> None:
        task = await _create(db_session, "x")
        await TaskRepository.update_status(db_session, task.id, TaskStatus.in_progress)
        updated = await TaskRepository.update_priority(
            db_session, task.id, TaskPriority.low
        )
        assert updated.status == TaskStatus.in_progress
        assert updated.priority == TaskPriority.low

    async def test_missing_task_raises(self, db_session) -> None:
        with pytest.raises(TaskNotFoundError):
            await TaskRepository.update(db_session, 999, TaskPatch(title="x"))

    async def test_missing_delete_raises(self, db_session) -> None:
        with pytest.raises(TaskNotFoundError):
            await TaskRepository.delete(db_session, 999)


class TestToggleCompleted:
    async def test_toggle_twice_restores(self, db_session) -> None:
        task = await _create(db_session, "Flip")
        once = await TaskRepository.toggle_completed(db_session, task.id)
        twice = await TaskRepository.toggle_completed(db_session, task.id)
        assert once.completed is True
        assert twice.completed is False

    async def test_missing_task_raises(self, db_session) -> None:
        with pytest.raises(TaskNotFoundError):
            await TaskRepository.toggle_completed(db_session, 999)


class TestCountAndExists:
    async def test_count_with_filter(self, db_session) -> None:
        first = await _create(db_session, "a")
        await _create(db_session, "b")
        await TaskRepository.toggle_completed(db_session, first.id)

        assert await TaskRepository.count(db_session) == 2
        assert await TaskRepository.count(db_session, {"completed": True}) == 1
        assert [t.title for t in await TaskRepository.find_completed(db_session)] == ["a"]
        assert [t.title for t in await TaskRepository.find_incomplete(db_session)] == ["b"]

    async def test_exists(self, db_session) -> None:
        task = await _create(db_session, "here")
        assert await TaskRepository.exists(db_session, task.id) is True
        assert await TaskRepository.exists(db_session, task.id + 1) is False


class TestDeleteMany:
    async def test_removes_matching_rows(self, db_session) -> None:
        await _create(db_session, "a", status=TaskStatus.done)
        await _create(db_session, "b", status=TaskStatus.done)
        await _create(db_session, "c")

        removed = await TaskRepository.delete_many(
            db_session, {"status": TaskStatus.done}
        )
        assert removed == 2
        assert [t.title for t in await TaskRepository.find_many(db_session)] == ["c"]

    async def test_no_match_returns_zero(self, db_session) -> None:
        assert await TaskRepository.delete_many(db_session, {"title": "nope"}) == 0


class TestStoreErrors:
    async def test_driver_failure_becomes_store_error(
        self, db_session, monkeypatch
    ) -> None:
        async def failing_commit():
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db_session, "commit", failing_commit)

        with pytest.raises(StoreError) as exc:
            await _create(db_session, "never stored")

        assert exc.value.operation == "create"
        assert "disk I/O" not in exc.value.message
        assert isinstance(exc.value.__cause__, OperationalError)
