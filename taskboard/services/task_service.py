import logging
import math
import uuid
from datetime import datetime, timezone

from taskboard.errors import InvalidRequestError, TaskNotFoundError
from taskboard.models import (
    PaginatedTasks,
    PaginationMeta,
    PaginationQuery,
    Task,
    TaskCreate,
    TaskFilters,
    TaskImport,
    TaskPriority,
    TaskStatistics,
    TaskStatus,
    TaskUpdate,
    utc_now_iso,
)
from taskboard.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_IMPORT_SIZE = 1000

_PRIORITY_ORDER = {
    TaskPriority.HIGH: 3,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 1,
}

_SORT_ATTRIBUTES = {
    "title": "title",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "dueDate": "due_date",
}


def paginate(tasks: list[Task], page: int | None, page_size: int | None) -> PaginatedTasks:
    """Slice ``tasks`` into one page and describe where it sits."""
    page = DEFAULT_PAGE if page is None else page
    page_size = DEFAULT_PAGE_SIZE if page_size is None else page_size

    if page_size < 1:
        raise InvalidRequestError("Page size must be greater than 0")

    total = len(tasks)
    total_pages = max(math.ceil(total / page_size), 1)

    if page < 1:
        raise InvalidRequestError("Page number must be greater than 0")
    if total == 0 and page > 1:
        raise InvalidRequestError("No data available")
    if total > 0 and page > total_pages:
        raise InvalidRequestError(
            f"Page {page} does not exist. Total pages: {total_pages}"
        )

    start = (page - 1) * page_size
    return PaginatedTasks(
        data=tasks[start : start + page_size],
        meta=PaginationMeta(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=total_pages,
            has_previous_page=page > 1,
            has_next_page=page < total_pages,
        ),
    )


def apply_filters(tasks: list[Task], filters: TaskFilters) -> list[Task]:
    query = (filters.search or "").strip().lower()

    selected = []
    for task in tasks:
        if filters.status and task.status != filters.status:
            continue
        if filters.priority and task.priority != filters.priority:
            continue
        if filters.category and task.category != filters.category:
            continue
        if query:
            in_title = query in task.title.lower()
            in_description = query in (task.description or "").lower()
            if not (in_title or in_description):
                continue
        selected.append(task)

    if filters.sort_by is None:
        return selected
    return sorted(
        selected,
        key=_sort_key(filters.sort_by),
        reverse=filters.sort_order == "desc",
    )


def _sort_key(sort_by: str):
    if sort_by == "priority":
        return lambda t: _PRIORITY_ORDER[t.priority]
    if sort_by == "title":
        return lambda t: t.title.lower()
    attribute = _SORT_ATTRIBUTES[sort_by]
    return lambda t: getattr(t, attribute) or ""


def _find_index(tasks: list[Task], task_id: str) -> int:
    for index, task in enumerate(tasks):
        if task.id == task_id:
            return index
    return -1


def _is_overdue(task: Task, today) -> bool:
    if task.status != TaskStatus.PENDING or not task.due_date:
        return False
    try:
        due = datetime.fromisoformat(task.due_date.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring unparseable due date on task {task.id}")
        return False
    if due.tzinfo is not None:
        due = due.astimezone(timezone.utc)
    return due.date() < today


class TaskService:
    """Task CRUD, pagination and bulk operations on top of a DocumentStore."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def find_all(
        self,
        query: PaginationQuery | None = None,
        filters: TaskFilters | None = None,
    ) -> list[Task] | PaginatedTasks:
        # Unlocked on purpose: may trail an in-flight write by up to the cache TTL.
        document = await self.store.read_data()
        tasks = document.tasks
        if filters is not None:
            tasks = apply_filters(tasks, filters)

        if query is None or not query.has_pagination:
            logger.info(f"Retrieved {len(tasks)} tasks (no pagination)")
            return list(tasks)

        result = paginate(tasks, query.page, query.page_size)
        logger.info(
            f"Retrieved {len(result.data)} tasks "
            f"(page {result.meta.page}/{result.meta.total_pages})"
        )
        return result

    async def find_one(self, task_id: str) -> Task:
        async with self.store.lock:
            document = await self.store.read_data()
            index = _find_index(document.tasks, task_id)
            if index == -1:
                logger.warning(f"Task not found with ID: {task_id}")
                raise TaskNotFoundError(task_id)
            return document.tasks[index]

    async def create(self, task_data: TaskCreate) -> Task:
        """Append a new pending task. The read and the write share one lock."""
        logger.info(f"Creating new task: {task_data.title}")
        now = utc_now_iso()
        task = Task(
            id=str(uuid.uuid4()),
            **task_data.model_dump(exclude_none=True),
            status=TaskStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

        async with self.store.lock:
            document = await self.store.read_data()
            updated = document.model_copy(update={"tasks": [*document.tasks, task]})
            await self.store.write_data_unguarded(updated)

        logger.info(f"Task created successfully with ID: {task.id}")
        return task

    async def update(self, task_id: str, task_data: TaskUpdate) -> Task:
        logger.info(f"Updating task with ID: {task_id}")
        async with self.store.lock:
            document = await self.store.read_data()
            index = _find_index(document.tasks, task_id)
            if index == -1:
                logger.warning(f"Cannot update - task not found with ID: {task_id}")
                raise TaskNotFoundError(task_id)

            changes = task_data.model_dump(exclude_unset=True)
            changes["updated_at"] = utc_now_iso()
            task = document.tasks[index].model_copy(update=changes)

            tasks = list(document.tasks)
            tasks[index] = task
            await self.store.write_data_unguarded(
                document.model_copy(update={"tasks": tasks})
            )

        logger.info(f"Task updated successfully: {task.title}")
        return task

    async def remove(self, task_id: str) -> None:
        logger.info(f"Deleting task with ID: {task_id}")
        async with self.store.lock:
            document = await self.store.read_data()
            index = _find_index(document.tasks, task_id)
            if index == -1:
                logger.warning(f"Cannot delete - task not found with ID: {task_id}")
                raise TaskNotFoundError(task_id)

            tasks = document.tasks[:index] + document.tasks[index + 1 :]
            await self.store.write_data_unguarded(
                document.model_copy(update={"tasks": tasks})
            )

        logger.info(f"Task deleted successfully: {task_id}")

    async def export_tasks(self) -> list[Task]:
        async with self.store.lock:
            document = await self.store.read_data()
        logger.info(f"Exported {len(document.tasks)} tasks")
        return list(document.tasks)

    async def import_tasks(self, items: list[TaskImport]) -> list[Task]:
        """
        Merge exported task records into the collection in one write.

        Records whose id already exists replace that task; records with an
        unknown id are appended; records without an id get a new one.
        """
        if len(items) > MAX_IMPORT_SIZE:
            raise InvalidRequestError(
                f"Cannot import more than {MAX_IMPORT_SIZE} tasks at once"
            )

        async with self.store.lock:
            document = await self.store.read_data()
            tasks = list(document.tasks)
            positions = {task.id: index for index, task in enumerate(tasks)}

            imported = []
            for item in items:
                now = utc_now_iso()
                fields = item.model_dump(exclude_none=True, exclude={"id"})
                fields.setdefault("status", TaskStatus.PENDING)
                fields.setdefault("created_at", now)
                task_id = str(item.id) if item.id else str(uuid.uuid4())

                if task_id in positions:
                    fields["updated_at"] = now
                    task = Task(id=task_id, **fields)
                    tasks[positions[task_id]] = task
                else:
                    fields.setdefault("updated_at", now)
                    task = Task(id=task_id, **fields)
                    positions[task_id] = len(tasks)
                    tasks.append(task)
                imported.append(task)

            await self.store.write_data_unguarded(
                document.model_copy(update={"tasks": tasks})
            )

        logger.info(f"Imported {len(imported)} tasks")
        return imported

    async def get_statistics(self) -> TaskStatistics:
        document = await self.store.read_data()
        tasks = document.tasks
        today = datetime.now(timezone.utc).date()

        def count(predicate) -> int:
            return sum(1 for task in tasks if predicate(task))

        total = len(tasks)
        completed = count(lambda t: t.status == TaskStatus.COMPLETED)
        return TaskStatistics(
            total=total,
            completed=completed,
            in_progress=count(lambda t: t.status == TaskStatus.IN_PROGRESS),
            pending=count(lambda t: t.status == TaskStatus.PENDING),
            overdue=count(lambda t: _is_overdue(t, today)),
            high_priority=count(lambda t: t.priority == TaskPriority.HIGH),
            medium_priority=count(lambda t: t.priority == TaskPriority.MEDIUM),
            low_priority=count(lambda t: t.priority == TaskPriority.LOW),
            completion_rate=round(completed / total * 100) if total else 0,
        )
