from datetime import datetime, timezone
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


def _validate_iso8601(value: str | None) -> str | None:
    if value is None:
        return value
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError("Due date must be a valid ISO 8601 date string") from None
    return value


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskCategory(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    SHOPPING = "shopping"
    HEALTH = "health"
    OTHER = "other"


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase JSON (both accepted on input)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Task(CamelModel):
    """Persisted task record"""

    id: str
    title: str
    description: str | None = None
    priority: TaskPriority
    status: TaskStatus = TaskStatus.PENDING
    category: TaskCategory | None = None
    due_date: str | None = None
    created_at: str
    updated_at: str


class TaskCreate(CamelModel):
    """Schema for creating a task"""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    priority: TaskPriority
    category: TaskCategory | None = None
    due_date: str | None = None

    check_due_date = field_validator("due_date")(_validate_iso8601)


class TaskUpdate(CamelModel):
    """Schema for updating a task - all fields optional"""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    category: TaskCategory | None = None
    due_date: str | None = None

    check_due_date = field_validator("due_date")(_validate_iso8601)

    @field_validator("title", "priority", "status")
    @classmethod
    def reject_null(cls, value):
        # Only runs for values the client sent; an explicit null can't clear these.
        if value is None:
            raise ValueError("Field may be omitted but not set to null")
        return value


class TaskImport(CamelModel):
    """A task record as found in an export file"""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID | None = None
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    priority: TaskPriority
    status: TaskStatus | None = None
    category: TaskCategory | None = None
    due_date: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    check_due_date = field_validator("due_date")(_validate_iso8601)


class TasksDocument(CamelModel):
    """The whole persisted state: ``{"tasks": [...]}``."""

    tasks: list[Task] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_ids(self):
        seen = set()
        for task in self.tasks:
            if task.id in seen:
                raise ValueError(f"Duplicate task id {task.id}")
            seen.add(task.id)
        return self


class PaginationQuery(CamelModel):
    page: int | None = Field(default=None, ge=1)
    page_size: int | None = Field(default=None, ge=1, le=100)

    @property
    def has_pagination(self) -> bool:
        return self.page is not None or self.page_size is not None


class PaginationMeta(CamelModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_previous_page: bool
    has_next_page: bool


class PaginatedTasks(CamelModel):
    data: list[Task]
    meta: PaginationMeta


SortField = Literal["title", "priority", "createdAt", "updatedAt", "dueDate"]


class TaskFilters(CamelModel):
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    category: TaskCategory | None = None
    search: str | None = None
    sort_by: SortField | None = None
    sort_order: Literal["asc", "desc"] = "desc"


class TaskStatistics(CamelModel):
    total: int
    completed: int
    in_progress: int
    pending: int
    overdue: int
    high_priority: int
    medium_priority: int
    low_priority: int
    completion_rate: int


class FileHealth(CamelModel):
    """Result of probing the data file for the health endpoint."""

    file: str
    exists: bool = False
    readable: bool = False
    writable: bool = False
    valid_json: bool = False
    task_count: int | None = None
    error: str | None = None

    @property
    def healthy(self) -> bool:
        return self.exists and self.readable and self.writable and self.valid_json
