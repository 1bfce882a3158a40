# taskboard/services/task_store.py
import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from taskboard.errors import InvalidInput, NotFound, StorageFailure, TaskboardError
from taskboard.models.task import TASK_STATUSES, Attachment, Task
from taskboard.schemas import FileIn
from taskboard.utils.blobs import BlobDirectory, decode_payload, make_filename

logger = logging.getLogger("taskboard.tasks")

ChangeListener = Callable[[], Awaitable[None]]


def _check_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise InvalidInput("title required")
    return title


def _check_status(status: Any) -> str:
    if status not in TASK_STATUSES:
        raise InvalidInput(f"status must be one of: {', '.join(TASK_STATUSES)}")
    return status


def _has_file(file: Optional[FileIn]) -> bool:
    # an empty payload means no file was chosen
    return file is not None and bool(file.data)


class TaskStore:
    """
    Authoritative task collection plus attachment blobs.

    Every call opens a fresh session, so it always works on what is committed,
    never on objects cached from an earlier call. Mutations hold a per-store
    lock for their whole read-modify-commit sequence, so writers are served
    one at a time in arrival order. Listeners run after the commit.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], blobs: BlobDirectory):
        self._sessionmaker = sessionmaker
        self._blobs = blobs
        self._lock = asyncio.Lock()
        self._listeners: List[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    async def _changed(self) -> None:
        for listener in self._listeners:
            try:
                await listener()
            except Exception:
                # the mutation is already committed; a failed notification must not undo its result
                logger.exception("Change listener failed")

    async def _store_attachment(self, file: FileIn) -> Attachment:
        content = decode_payload(file.data)
        filename = make_filename(file.originalname)
        # the blob must exist before any record points at it
        await self._blobs.write(filename, content)
        return Attachment(filename=filename, originalname=file.originalname or filename)

    async def _get(self, session: AsyncSession, task_id: str) -> Task:
        task = await session.get(Task, str(task_id))
        if task is None:
            raise NotFound("not found")
        return task

    async def list(self) -> List[Task]:
        try:
            async with self._sessionmaker() as session:
                q = await session.execute(select(Task).order_by(Task.position))
                return list(q.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Failed to read tasks: %s", exc)
            raise StorageFailure("Failed to read tasks") from exc

    async def snapshot(self) -> List[Dict[str, Any]]:
        return [t.to_dict() for t in await self.list()]

    async def create(
        self,
        title: Optional[str],
        status: Optional[str] = None,
        due_date: Optional[str] = None,
        attachment: Optional[FileIn] = None,
    ) -> Dict[str, Any]:
        title = _check_title(title)
        status = _check_status(status or "pending")

        async with self._lock:
            try:
                async with self._sessionmaker() as session:
                    q = await session.execute(select(func.max(Task.position)))
                    last = q.scalar()
                    # an explicit empty list keeps to_dict from lazy-loading after commit
                    task = Task(
                        title=title, status=status, due_date=due_date or None,
                        position=(last or 0) + 1, attachments=[],
                    )
                    if _has_file(attachment):
                        task.attachments.append(await self._store_attachment(attachment))
                    session.add(task)
                    await session.commit()
            except SQLAlchemyError as exc:
                logger.error("Failed to create task: %s", exc)
                raise StorageFailure("Failed to save task") from exc

        result = task.to_dict()
        logger.info("Task created: %s", result["id"])
        await self._changed()
        return result

    async def update(
        self,
        task_id: str,
        fields: Dict[str, Any],
        attachment: Optional[FileIn] = None,
    ) -> Dict[str, Any]:
        # validate before touching storage
        if "title" in fields:
            _check_title(fields["title"])
        if "status" in fields:
            _check_status(fields["status"])

        async with self._lock:
            try:
                async with self._sessionmaker() as session:
                    task = await self._get(session, task_id)
                    if "title" in fields:
                        task.title = fields["title"]
                    if "status" in fields:
                        task.status = fields["status"]
                    if "dueDate" in fields:
                        task.due_date = fields["dueDate"] or None
                    if _has_file(attachment):
                        task.attachments.append(await self._store_attachment(attachment))
                    await session.commit()
            except SQLAlchemyError as exc:
                logger.error("Failed to update task %s: %s", task_id, exc)
                raise StorageFailure("Failed to save task") from exc

        result = task.to_dict()
        logger.info("Task updated: %s (%s)", task_id, ", ".join(sorted(fields)) or "attachment")
        await self._changed()
        return result

    async def delete(self, task_id: str) -> Dict[str, str]:
        async with self._lock:
            try:
                async with self._sessionmaker() as session:
                    task = await self._get(session, task_id)
                    # attachment blobs stay on disk
                    await session.delete(task)
                    await session.commit()
            except SQLAlchemyError as exc:
                logger.error("Failed to delete task %s: %s", task_id, exc)
                raise StorageFailure("Failed to delete task") from exc

        logger.info("Task deleted: %s", task_id)
        await self._changed()
        return {"message": "deleted"}

    async def get_attachment(self, task_id: str, filename: str) -> Path:
        """Path of a stored blob for download."""
        try:
            return self._blobs.existing(filename)
        except TaskboardError:
            logger.info("Attachment %s for task %s not found", filename, task_id)
            raise
