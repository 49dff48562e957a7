class TaskboardError(Exception):
    """Base class for errors raised by the store and the task service."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TaskNotFoundError(TaskboardError):
    """No task matches the requested id."""

    def __init__(self, task_id: str):
        super().__init__(f"Task with ID {task_id} not found")
        self.task_id = task_id


class InvalidRequestError(TaskboardError):
    """Client input the service can not honour (bad page, oversized import)."""


class StorageError(TaskboardError):
    """The data file could not be read or written."""
