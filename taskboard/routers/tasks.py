"""Session API: task, history and migration endpoints for the signed-in user.

Repository errors propagate to the ``TaskboardError`` handler registered in
``taskboard.main``.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import activity
from ..database import get_db
from ..models import User
from ..repository import SESSION_POLICY, TaskRepository
from ..schemas.activity import ActivityEntry, RecentActivityEntry
from ..schemas.task import (
    DueDateRange,
    MigrateRequest,
    MigrateResponse,
    Status,
    SuccessResponse,
    Task as TaskSchema,
    TaskCreate,
    TaskSearch,
    TaskSearchResult,
    TaskUpdate,
)
from .auth import get_current_user

router = APIRouter()


def get_repository(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TaskRepository:
    return TaskRepository(db, current_user.id, SESSION_POLICY)


@router.post("/tasks", response_model=TaskSchema, status_code=status.HTTP_201_CREATED)
def create_task(task: TaskCreate, repo: TaskRepository = Depends(get_repository)):
    """Create a task at the bottom of its column."""
    return repo.create(
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        tags=task.tags,
        due_date=task.due_date,
        order=task.order,
    )


@router.get("/tasks", response_model=List[TaskSchema])
def list_tasks(
    status: Optional[Status] = None,
    repo: TaskRepository = Depends(get_repository),
):
    """List non-archived tasks, optionally for a single column."""
    if status is not None:
        return repo.list_by_status(status)
    return repo.list()


@router.get("/tasks/archived", response_model=List[TaskSchema])
def list_archived_tasks(repo: TaskRepository = Depends(get_repository)):
    return repo.list_archived()


@router.get("/tasks/active", response_model=Optional[TaskSchema])
def get_active_task(repo: TaskRepository = Depends(get_repository)):
    return repo.get_active()


@router.post("/tasks/active/clear", response_model=SuccessResponse)
def clear_active_task(repo: TaskRepository = Depends(get_repository)):
    repo.clear_active()
    return {"success": True}


@router.post("/tasks/search", response_model=TaskSearchResult)
def search_tasks(filters: TaskSearch, repo: TaskRepository = Depends(get_repository)):
    due_date = filters.due_date
    if isinstance(due_date, DueDateRange):
        due_date = due_date.model_dump(exclude_none=True)
    tasks = repo.search(
        text=filters.text,
        priority=filters.priority,
        status=filters.status,
        tags=filters.tags,
        due_date=due_date,
    )
    return {"tasks": tasks, "count": len(tasks)}


@router.get("/tasks/{task_id}", response_model=TaskSchema)
def get_task(task_id: str, repo: TaskRepository = Depends(get_repository)):
    return repo.get(task_id)


@router.patch("/tasks/{task_id}", response_model=TaskSchema)
def update_task(
    task_id: str,
    task_update: TaskUpdate,
    repo: TaskRepository = Depends(get_repository),
):
    """Apply a partial update; each changed field is logged."""
    return repo.update(task_id, task_update.model_dump(exclude_unset=True))


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: str, repo: TaskRepository = Depends(get_repository)):
    """Permanently delete a task and its history."""
    repo.delete(task_id)


@router.post("/tasks/{task_id}/archive", response_model=TaskSchema)
def archive_task(task_id: str, repo: TaskRepository = Depends(get_repository)):
    return repo.archive(task_id)


@router.post("/tasks/{task_id}/restore", response_model=TaskSchema)
def restore_task(task_id: str, repo: TaskRepository = Depends(get_repository)):
    """Un-archive a task; it always returns to the backlog."""
    return repo.restore(task_id)


@router.post("/tasks/{task_id}/activate", response_model=TaskSchema)
def set_active_task(task_id: str, repo: TaskRepository = Depends(get_repository)):
    return repo.set_active(task_id)


@router.get("/tasks/{task_id}/history", response_model=List[ActivityEntry])
def get_task_history(task_id: str, repo: TaskRepository = Depends(get_repository)):
    return [activity.serialize_entry(entry) for entry in repo.history(task_id)]


@router.get("/activity", response_model=List[RecentActivityEntry])
def get_recent_activity(
    limit: int = Query(activity.DEFAULT_RECENT_LIMIT, ge=1, le=500),
    repo: TaskRepository = Depends(get_repository),
):
    return activity.recent_activity(repo.db, repo.owner_id, limit)


@router.post("/migrate", response_model=MigrateResponse)
def migrate_local_tasks(payload: MigrateRequest, repo: TaskRepository = Depends(get_repository)):
    """Import legacy tasks already transformed on the client."""
    imported = repo.import_legacy(task.model_dump() for task in payload.tasks)
    return {"imported": imported}
