import asyncio
import logging
import os
import shutil
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from taskboard.cache.layer import DocumentCache
from taskboard.errors import StorageError
from taskboard.models import FileHealth, TasksDocument

logger = logging.getLogger(__name__)


class DocumentStore:
    """
    Crash-safe, cached store for the single ``{"tasks": [...]}`` JSON file.

    Reads:
    - served from a short-lived DocumentCache when fresh
    - a missing file reads as an empty document (first run)

    Writes:
    - serialized by ``self.lock`` (asyncio.Lock, FIFO, not re-entrant)
    - primary copied to ``.backup``, new content written to ``.tmp``
    - ``.tmp`` replaced over the primary; this rename is the commit point
    - cache invalidated, backup removed
    - on failure the primary is restored from the backup and ``.tmp`` removed

    Callers that need read-modify-write atomicity hold ``self.lock`` for the
    whole sequence and finish with ``write_data_unguarded``.
    """

    def __init__(self, data_path: str | Path, cache: DocumentCache | None = None):
        self.data_path = Path(data_path)
        self.data_dir = self.data_path.parent
        self.temp_path = self.data_path.with_name(f"{self.data_path.name}.tmp")
        self.backup_path = self.data_path.with_name(f"{self.data_path.name}.backup")
        self.cache: DocumentCache[TasksDocument] = cache or DocumentCache()
        self.lock = asyncio.Lock()

    def invalidate_cache(self) -> None:
        self.cache.invalidate()

    async def read_data(self) -> TasksDocument:
        """
        Return the current document.

        Raises:
            StorageError: the file exists but can't be read or parsed
        """
        cached = self.cache.get()
        if cached is not None:
            return cached

        try:
            async with aiofiles.open(self.data_path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            logger.warning(
                f"Tasks file not found at {self.data_path}, initializing empty task list"
            )
            document = TasksDocument()
            self.cache.set(document)
            return document
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read tasks file: {e}")
            raise StorageError("Failed to load tasks data") from e

        try:
            document = TasksDocument.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Failed to parse tasks file {self.data_path}: {e}")
            raise StorageError("Failed to load tasks data") from e

        self.cache.set(document)
        logger.debug(f"Cached {len(document.tasks)} tasks")
        return document

    async def write_data(self, document: TasksDocument) -> None:
        """Persist ``document`` under the store lock."""
        async with self.lock:
            await self.write_data_unguarded(document)

    async def write_data_unguarded(self, document: TasksDocument) -> None:
        """
        Persist ``document`` assuming the caller already holds ``self.lock``.

        Never call ``write_data`` from inside the lock: asyncio.Lock is not
        re-entrant and the task would wait on itself.

        Raises:
            StorageError: the write failed (after rollback was attempted)
        """
        if not self.lock.locked():
            raise RuntimeError("write_data_unguarded requires the store lock")

        backed_up = False
        try:
            await self._ensure_data_dir()

            try:
                await asyncio.to_thread(shutil.copyfile, self.data_path, self.backup_path)
                backed_up = True
                logger.debug("Created backup of tasks file")
            except FileNotFoundError:
                pass  # first write, nothing to back up

            payload = document.model_dump_json(indent=2, by_alias=True, exclude_none=True)
            async with aiofiles.open(self.temp_path, "w", encoding="utf-8") as f:
                await f.write(payload)

            await aiofiles.os.replace(self.temp_path, self.data_path)
            logger.debug(
                f"Successfully wrote {len(document.tasks)} tasks to file (atomic write)"
            )
        except Exception as e:
            await self._rollback(backed_up)
            logger.error(f"Failed to write tasks file: {e}")
            raise StorageError("Failed to save tasks data") from e

        self.invalidate_cache()

        try:
            await aiofiles.os.remove(self.backup_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove backup file {self.backup_path}: {e}")

    async def _ensure_data_dir(self) -> None:
        if await aiofiles.os.path.isdir(self.data_dir):
            return
        logger.info(f"Creating data directory at {self.data_dir}")
        await aiofiles.os.makedirs(self.data_dir, exist_ok=True)

    async def _rollback(self, backed_up: bool) -> None:
        if backed_up:
            try:
                await asyncio.to_thread(shutil.copyfile, self.backup_path, self.data_path)
                logger.warning("Write failed, restored from backup")
            except OSError as e:
                logger.error(f"Failed to rollback from backup: {e}")

        try:
            await aiofiles.os.remove(self.temp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove temp file {self.temp_path}: {e}")

    async def check_health(self) -> FileHealth:
        """Probe the data file: present, readable, writable, valid document."""
        report = FileHealth(file=str(self.data_path))
        try:
            report.exists = await aiofiles.os.path.isfile(self.data_path)
            if not report.exists:
                raise FileNotFoundError(f"{self.data_path} does not exist")

            report.readable = await aiofiles.os.access(self.data_path, os.R_OK)
            report.writable = await aiofiles.os.access(self.data_path, os.W_OK)
            if not (report.readable and report.writable):
                raise PermissionError(f"{self.data_path} is not readable and writable")

            async with aiofiles.open(self.data_path, "r", encoding="utf-8") as f:
                document = TasksDocument.model_validate_json(await f.read())
            report.valid_json = True
            report.task_count = len(document.tasks)
            logger.debug(f"File system health check passed: {report.task_count} tasks")
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            report.error = str(e)
            logger.error(f"File system health check failed: {e}")
        return report
