from pathlib import Path

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlmodel.ext.asyncio.session import AsyncSession

from app.actions.tasks import (
    ActionResult,
    Redirect,
    create_task_action,
    delete_task_action,
    toggle_task_action,
    update_task_action,
)
from app.database import get_db
from app.dependencies import get_http_client
from app.fetchers.task_list import (
    TaskListFilters,
    TaskListQuery,
    TaskListSort,
    get_memoized_task_list,
    get_no_store_task_list,
)
from app.models import SORT_COLUMNS, TaskPriority, TaskRead, TaskStatus
from app.repositories.task_repository import TaskRepository

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["pages"], default_response_class=HTMLResponse)


def _enum_or_none(enum_cls, raw: str | None):
    try:
        return enum_cls(raw)
    except ValueError:
        return None


def _form_context(task: TaskRead | None = None, form=None, errors=None) -> dict:
    return {
        "task": task,
        "values": dict(form) if form is not None else {},
        "errors": errors or {},
        "statuses": list(TaskStatus),
        "priorities": list(TaskPriority),
    }


def _render_result(
    request: Request, result: ActionResult, template: str, context: dict
):
    if isinstance(result, Redirect):
        return RedirectResponse(result.location, status_code=status.HTTP_303_SEE_OTHER)
    context["errors"] = result.errors
    return templates.TemplateResponse(
        request, template, context, status_code=status.HTTP_400_BAD_REQUEST
    )


async def _load_task(task_id: str, db: AsyncSession) -> TaskRead:
    try:
        parsed = int(task_id)
    except ValueError:
        parsed = None
    task = await TaskRepository.find_by_id(db, parsed) if parsed else None
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


@router.get("/")
async def home(request: Request):
    return templates.TemplateResponse(request, "home.html", {})


@router.get("/tasks")
async def task_list(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
):
    params = request.query_params
    task_status = _enum_or_none(TaskStatus, params.get("status"))
    priority = _enum_or_none(TaskPriority, params.get("priority"))
    sort_field = params.get("sortBy")
    sort_order = params.get("sortOrder")

    query = TaskListQuery(
        where=(
            TaskListFilters(status=task_status, priority=priority)
            if task_status or priority
            else None
        ),
        sort=TaskListSort(
            field=sort_field if sort_field in SORT_COLUMNS else "createdAt",
            order=sort_order if sort_order in ("asc", "desc") else "desc",
        ),
    )

    # The second memoized read must resolve to the first one's result
    memoized = await get_memoized_task_list(query, client)
    memoized_again = await get_memoized_task_list(query, client)
    no_store = await get_no_store_task_list(query, client)

    return templates.TemplateResponse(
        request,
        "tasks/list.html",
        {
            "tasks": memoized.tasks,
            "diagnostics": memoized.diagnostics,
            "no_store_diagnostics": no_store.diagnostics,
            "memoization_verified": memoized is memoized_again,
            "selected_status": task_status.value if task_status else "",
            "selected_priority": priority.value if priority else "",
            "statuses": list(TaskStatus),
            "priorities": list(TaskPriority),
        },
    )


@router.get("/tasks/new")
async def new_task_form(request: Request):
    return templates.TemplateResponse(request, "tasks/form.html", _form_context())


@router.post("/tasks/new")
async def create_task(request: Request, db: AsyncSession = Depends(get_db)):
    form = await request.form()
    result = await create_task_action(form, db)
    return _render_result(request, result, "tasks/form.html", _form_context(form=form))


@router.get("/tasks/{task_id}")
async def task_detail(request: Request, task_id: str, db: AsyncSession = Depends(get_db)):
    task = await _load_task(task_id, db)
    return templates.TemplateResponse(
        request, "tasks/detail.html", {"task": task, "errors": {}}
    )


@router.get("/tasks/{task_id}/edit")
async def edit_task_form(
    request: Request, task_id: str, db: AsyncSession = Depends(get_db)
):
    task = await _load_task(task_id, db)
    return templates.TemplateResponse(request, "tasks/form.html", _form_context(task))


@router.post("/tasks/{task_id}/edit")
async def update_task(request: Request, task_id: str, db: AsyncSession = Depends(get_db)):
    form = await request.form()
    result = await update_task_action(form, db)
    if isinstance(result, Redirect):
        return _render_result(request, result, "tasks/form.html", {})
    task = await _load_task(task_id, db)
    return _render_result(
        request, result, "tasks/form.html", _form_context(task, form=form)
    )


@router.post("/tasks/{task_id}/delete")
async def delete_task(request: Request, task_id: str, db: AsyncSession = Depends(get_db)):
    form = await request.form()
    result = await delete_task_action(form, db)
    if isinstance(result, Redirect):
        return _render_result(request, result, "tasks/detail.html", {})
    task = await _load_task(task_id, db)
    return _render_result(request, result, "tasks/detail.html", {"task": task})


@router.post("/tasks/{task_id}/toggle")
async def toggle_task(request: Request, task_id: str, db: AsyncSession = Depends(get_db)):
    form = await request.form()
    result = await toggle_task_action(form, db)
    if isinstance(result, Redirect):
        return _render_result(request, result, "tasks/detail.html", {})
    task = await _load_task(task_id, db)
    return _render_result(request, result, "tasks/detail.html", {"task": task})
