from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import EmailStr
from sqlmodel.ext.asyncio.session import AsyncSession

from app.database import get_db
from app.models import (
    TaskCreate,
    TaskPatch,
    TaskPriority,
    TaskQuery,
    TaskRead,
    TaskSortField,
    TaskSortOrder,
    TaskStatus,
)
from app.services.task_service import TaskService

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.post("/", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(task_data: TaskCreate, db: AsyncSession = Depends(get_db)):
    """Create a new task"""
    return await TaskService.create_task(task_data, db)


@router.get("/", response_model=list[TaskRead])
async def get_tasks(
    task_status: TaskStatus | None = Query(default=None, alias="status"),
    priority: TaskPriority | None = None,
    assignee: EmailStr | None = None,
    completed: bool | None = None,
    sort_by: TaskSortField = Query(default="createdAt", alias="sortBy"),
    sort_order: TaskSortOrder = Query(default="desc", alias="sortOrder"),
    limit: int = Query(default=10, ge=1),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    query = TaskQuery(
        status=task_status,
        priority=priority,
        assignee=assignee,
        completed=completed,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    return await TaskService.get_tasks(db, query)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(task_id: int, db: AsyncSession = Depends(get_db)):
    """Get a specific task by ID"""

    task = await TaskService.get_task(task_id, db)

    if not task:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task with id {task_id} not found",
        )
    return task


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: int, task_data: TaskPatch, db: AsyncSession = Depends(get_db)
):
    return await TaskService.update_task(task_id, task_data, db)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a task"""
    await TaskService.delete_task(task_id, db)


@router.post("/{task_id}/toggle", response_model=TaskRead)
async def toggle_task(task_id: int, db: AsyncSession = Depends(get_db)):
    """Flip a task's completed flag"""
    return await TaskService.toggle_task(task_id, db)
