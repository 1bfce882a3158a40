# taskboard/routers/tasks.py
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import FileResponse

from taskboard.deps import get_current_identity, get_task_store
from taskboard.schemas import TaskCreate, TaskUpdate
from taskboard.services.auth_service import Claim
from taskboard.services.task_store import TaskStore

logger = logging.getLogger("taskboard.tasks")

# every route here sits behind the authorization gate
router = APIRouter(prefix="/api/tasks", tags=["tasks"], dependencies=[Depends(get_current_identity)])


@router.get("")
async def list_tasks(store: TaskStore = Depends(get_task_store)):
    return await store.snapshot()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreate,
    store: TaskStore = Depends(get_task_store),
    identity: Claim = Depends(get_current_identity),
):
    logger.info(f"POST /api/tasks by {identity.email}")
    return await store.create(payload.title, payload.status, payload.dueDate, payload.file)


@router.patch("/{task_id}")
@router.put("/{task_id}")
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    store: TaskStore = Depends(get_task_store),
    identity: Claim = Depends(get_current_identity),
):
    logger.info(f"UPDATE /api/tasks/{task_id} by {identity.email}")
    return await store.update(task_id, payload.changes(), payload.file)


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    store: TaskStore = Depends(get_task_store),
    identity: Claim = Depends(get_current_identity),
):
    logger.info(f"DELETE /api/tasks/{task_id} by {identity.email}")
    return await store.delete(task_id)


@router.get("/{task_id}/files/{filename}")
async def download_attachment(task_id: str, filename: str, store: TaskStore = Depends(get_task_store)):
    path = await store.get_attachment(task_id, filename)
    return FileResponse(path, filename=filename)
