from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import EmailStr, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in_progress"
    done = "done"


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


TaskSortField = Literal["createdAt", "updatedAt", "dueDate", "priority"]
TaskSortOrder = Literal["asc", "desc"]

SORT_COLUMNS: dict[str, str] = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "dueDate": "due_date",
    "priority": "priority",
}


class TaskBase(SQLModel):
    """Base model with shared fields"""

    title: str = Field(min_length=1, max_length=255, index=True)
    description: str | None = Field(default=None, max_length=1000)
    status: TaskStatus = Field(default=TaskStatus.todo)
    priority: TaskPriority = Field(default=TaskPriority.medium)
    due_date: date | None = Field(default=None)


class Task(TaskBase, table=True):
    """Database model"""

    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    assignee: str | None = Field(default=None, max_length=320)
    completed: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class TaskCreate(TaskBase):
    """Schema for creating a task. Unknown fields are rejected."""

    model_config = {"extra": "forbid"}

    assignee: EmailStr | None = None


class TaskPatch(SQLModel):
    """Partial task fields; only the fields explicitly set are applied."""

    model_config = {"extra": "forbid"}

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assignee: EmailStr | None = None
    due_date: date | None = None
    completed: bool | None = None

    @field_validator("title", "status", "priority", "completed")
    @classmethod
    def _not_null(cls, value, info):
        # only runs for fields present in the input; these columns are NOT NULL
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"id"})


class TaskUpdate(TaskPatch):
    """Schema for updating a task - all fields optional except id"""

    id: int = Field(gt=0)


class TaskRead(TaskBase):
    """Schema for tasks handed out of the repository.

    Serializes with camelCase names (``dueDate``, ``createdAt``) and accepts
    either spelling on input.
    """

    model_config = {
        "from_attributes": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    id: int = Field(gt=0)
    assignee: EmailStr | None = None
    completed: bool = False
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _timestamps_ordered(self) -> "TaskRead":
        if self.created_at > self.updated_at:
            raise ValueError("created_at must not be later than updated_at")
        return self


class TaskQuery(SQLModel):
    """Filters, sort and pagination for task listings."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assignee: EmailStr | None = None
    completed: bool | None = None
    sort_by: TaskSortField = "createdAt"
    sort_order: TaskSortOrder = "desc"
    limit: int = Field(default=10, gt=0)
    offset: int = Field(default=0, ge=0)

    def filters(self) -> dict[str, Any]:
        return self.model_dump(
            include={"status", "priority", "assignee", "completed"},
            exclude_none=True,
        )


_FIELD_MESSAGES: dict[tuple[str, str], str] = {
    ("title", "missing"): "Title is required",
    ("title", "string_too_short"): "Title is required",
    ("title", "string_too_long"): "Title must be less than 255 characters",
    ("title", "value_error"): "Title is required",
    ("description", "string_too_long"): "Description must be less than 1000 characters",
    ("assignee", "value_error"): "Invalid email format",
}


def field_errors(exc: ValidationError) -> dict[str, list[str]]:
    """Flatten a ValidationError into ``{field: [messages]}``."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        field = str(loc[0]) if loc else "__root__"
        message = _FIELD_MESSAGES.get((field, error["type"]), error["msg"])
        errors.setdefault(field, []).append(message)
    return errors
