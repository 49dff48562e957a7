from fastapi import APIRouter, Depends, Query, Request, status
from typing_extensions import Annotated

from taskboard.models import (
    PaginatedTasks,
    PaginationQuery,
    SortField,
    Task,
    TaskCategory,
    TaskCreate,
    TaskFilters,
    TaskImport,
    TaskPriority,
    TaskStatistics,
    TaskStatus,
    TaskUpdate,
)
from taskboard.services.task_service import TaskService

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]


@router.get(
    "/",
    response_model=list[Task] | PaginatedTasks,
    response_model_exclude_none=True,
)
async def get_tasks(
    service: TaskServiceDep,
    page: int | None = Query(default=None, ge=1),
    page_size: int | None = Query(default=None, ge=1, le=100, alias="pageSize"),
    task_status: TaskStatus | None = Query(default=None, alias="status"),
    priority: TaskPriority | None = None,
    category: TaskCategory | None = None,
    search: str | None = Query(default=None, max_length=200),
    sort_by: SortField | None = Query(default=None, alias="sortBy"),
    sort_order: str = Query(default="desc", alias="sortOrder", pattern="^(asc|desc)$"),
):
    """Get all tasks, paginated when page or pageSize is given"""
    filters = TaskFilters(
        status=task_status,
        priority=priority,
        category=category,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    query = PaginationQuery(page=page, page_size=page_size)
    return await service.find_all(query, filters)


@router.get("/export", response_model=list[Task], response_model_exclude_none=True)
async def export_tasks(service: TaskServiceDep):
    """Export every task as a JSON array"""
    return await service.export_tasks()


@router.post(
    "/import",
    response_model=list[Task],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def import_tasks(items: list[TaskImport], service: TaskServiceDep):
    """Import tasks, replacing those whose id already exists"""
    return await service.import_tasks(items)


@router.get("/stats", response_model=TaskStatistics)
async def get_statistics(service: TaskServiceDep):
    return await service.get_statistics()


@router.get("/{task_id}", response_model=Task, response_model_exclude_none=True)
async def get_task(task_id: str, service: TaskServiceDep):
    """Get a specific task by ID"""
    return await service.find_one(task_id)


@router.post(
    "/",
    response_model=Task,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_task(task_data: TaskCreate, service: TaskServiceDep):
    """Create a new task"""
    return await service.create(task_data)


@router.put("/{task_id}", response_model=Task, response_model_exclude_none=True)
async def update_task(task_id: str, task_data: TaskUpdate, service: TaskServiceDep):
    return await service.update(task_id, task_data)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, service: TaskServiceDep):
    """Delete a task"""
    await service.remove(task_id)
