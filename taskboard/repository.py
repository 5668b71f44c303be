"""Task repository: every read and write of a task goes through here.

A ``TaskRepository`` is bound to one owner and one ``TaskPolicy``. Each public
mutation stages its task writes and history entries on the session and commits
once, so a failure leaves nothing behind.
"""
from dataclasses import dataclass
import logging
import math
from numbers import Number
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import activity
from .errors import ConflictError, ForbiddenError, InvalidEnumError, NotFoundError, ValidationError
from .models import TRACKED_FIELDS, VALID_PRIORITIES, VALID_STATUSES, ActivityHistory, Task
from .search import DueDateFilter, filter_tasks
from .timeutil import now_ms

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "status", "priority", "tags", "due_date", "order")
NULLABLE_FIELDS = ("description", "due_date")

# Largest timestamp a JavaScript Date can represent
MAX_TIMESTAMP_MS = 8_640_000_000_000_000


@dataclass(frozen=True)
class TaskPolicy:
    """Behavior switches that differ between the session and token APIs."""
    allow_archived_updates: bool = False
    log_bulk_deactivation: bool = True


SESSION_POLICY = TaskPolicy()
SERVICE_POLICY = TaskPolicy(allow_archived_updates=True, log_bulk_deactivation=False)


def validate_status(status) -> str:
    if status not in VALID_STATUSES:
        raise InvalidEnumError("status", status, VALID_STATUSES)
    return status


def validate_priority(priority) -> str:
    if priority not in VALID_PRIORITIES:
        raise InvalidEnumError("priority", priority, VALID_PRIORITIES)
    return priority


def validate_title(title) -> str:
    """Return the trimmed title, rejecting missing or blank values."""
    if not isinstance(title, str) or title.strip() == "":
        raise ValidationError("Title cannot be empty")
    return title.strip()


def validate_tags(tags) -> List[str]:
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise ValidationError("Tags must be an array of strings")
    return tags


def validate_description(description) -> Optional[str]:
    if description is not None and not isinstance(description, str):
        raise ValidationError("Description must be a string")
    return description


def _validate_number(name: str, value, allow_none: bool = False):
    if value is None and allow_none:
        return None
    if isinstance(value, bool) or not isinstance(value, Number):
        raise ValidationError(f"{name} must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number")
    return value


def validate_due_date(due_date) -> Optional[int]:
    """Return the due date as whole epoch ms, or None to clear it."""
    if _validate_number("dueDate", due_date, allow_none=True) is None:
        return None
    if abs(due_date) > MAX_TIMESTAMP_MS:
        raise ValidationError("dueDate is out of range")
    return int(due_date)


class TaskRepository:

    def __init__(self, db: Session, owner_id: str, policy: TaskPolicy = SESSION_POLICY):
        self.db = db
        self.owner_id = str(owner_id)
        self.policy = policy

    # -- helpers ----------------------------------------------------------

    def _owned(self):
        return self.db.query(Task).filter(Task.user_id == self.owner_id)

    def _load(self, task_id: str) -> Task:
        task = self.db.get(Task, task_id)
        if task is None:
            raise NotFoundError(f"Task not found with ID: {task_id}")
        if task.user_id != self.owner_id:
            raise ForbiddenError("Not authorized to access this task")
        return task

    def _log(self, task_id: str, field: str, old, new) -> None:
        activity.record_change(self.db, task_id, field, old, new, self.owner_id)

    def _next_order(self, status: str) -> float:
        current = (
            self.db.query(func.max(Task.order))
            .filter(
                Task.user_id == self.owner_id,
                Task.status == status,
                Task.archived.is_(False),
            )
            .scalar()
        )
        return (current or 0) + 1

    def _active_tasks(self) -> List[Task]:
        return (
            self._owned()
            .filter(Task.is_active.is_(True), Task.archived.is_(False))
            .all()
        )

    def _commit(self, task: Optional[Task] = None) -> Optional[Task]:
        self.db.commit()
        if task is not None:
            self.db.refresh(task)
        return task

    # -- reads ------------------------------------------------------------

    def get(self, task_id: str) -> Task:
        return self._load(task_id)

    def list(self) -> List[Task]:
        return self._owned().filter(Task.archived.is_(False)).all()

    def list_by_status(self, status: str) -> List[Task]:
        validate_status(status)
        return (
            self._owned()
            .filter(Task.status == status, Task.archived.is_(False))
            .all()
        )

    def list_archived(self) -> List[Task]:
        return self._owned().filter(Task.archived.is_(True)).all()

    def get_active(self) -> Optional[Task]:
        active = self._active_tasks()
        return active[0] if active else None

    def search(
        self,
        text: Optional[str] = None,
        priority: Optional[str] = None,
        status: Optional[str] = None,
        tags: Optional[List[str]] = None,
        due_date: DueDateFilter = None,
        now: Optional[int] = None,
    ) -> List[Task]:
        if priority is not None:
            validate_priority(priority)
        if status is not None:
            validate_status(status)
        if tags is not None:
            validate_tags(tags)
        return filter_tasks(
            self.list(),
            text=text,
            priority=priority,
            status=status,
            tags=tags,
            due_date=due_date,
            now=now,
        )

    def history(self, task_id: str) -> List[ActivityHistory]:
        self._load(task_id)
        return activity.task_history(self.db, task_id)

    # -- writes -----------------------------------------------------------

    def create(
        self,
        title: str,
        description: Optional[str] = None,
        status: str = "backlog",
        priority: str = "medium",
        tags: Optional[List[str]] = None,
        due_date: Optional[int] = None,
        order: Optional[float] = None,
    ) -> Task:
        title = validate_title(title)
        validate_status(status)
        validate_priority(priority)
        validate_description(description)
        tags = validate_tags(tags if tags is not None else [])
        due_date = validate_due_date(due_date)
        if order is None:
            order = self._next_order(status)
        else:
            _validate_number("order", order)

        now = now_ms()
        task = Task(
            title=title,
            description=description,
            status=status,
            priority=priority,
            tags=list(tags),
            due_date=due_date,
            order=order,
            archived=False,
            is_active=False,
            created_at=now,
            updated_at=now,
            user_id=self.owner_id,
        )
        self.db.add(task)
        self.db.flush()
        self._log(task.id, activity.CREATED, None, {"title": title, "status": status})
        logger.debug("Created task %s for %s", task.id, self.owner_id)
        return self._commit(task)

    def update(self, task_id: str, updates: dict) -> Task:
        unknown = set(updates) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown update field(s): {', '.join(sorted(unknown))}")

        task = self._load(task_id)
        if task.archived and not self.policy.allow_archived_updates:
            raise ConflictError("Cannot update archived task")

        for field, value in updates.items():
            if value is None and field not in NULLABLE_FIELDS:
                raise ValidationError(f"{field} cannot be null")
        updates = dict(updates)
        if "title" in updates:
            validate_title(updates["title"])
        if "description" in updates:
            validate_description(updates["description"])
        if "status" in updates:
            validate_status(updates["status"])
        if "priority" in updates:
            validate_priority(updates["priority"])
        if "tags" in updates:
            validate_tags(updates["tags"])
        if "due_date" in updates:
            updates["due_date"] = validate_due_date(updates["due_date"])
        if "order" in updates:
            _validate_number("order", updates["order"])

        # Diff against the raw input, before the title is trimmed
        for field, value in updates.items():
            old = getattr(task, field)
            if activity.values_differ(old, value):
                self._log(task.id, TRACKED_FIELDS[field], old, value)

        for field, value in updates.items():
            if field == "title":
                value = value.strip()
            elif field == "tags":
                value = list(value)
            setattr(task, field, value)
        task.updated_at = now_ms()
        return self._commit(task)

    def move(self, task_id: str, status: str) -> Task:
        return self.update(task_id, {"status": status})

    def archive(self, task_id: str) -> Task:
        task = self._load(task_id)
        if not task.archived:
            self._log(task.id, "archived", False, True)
        task.archived = True
        task.updated_at = now_ms()
        return self._commit(task)

    def restore(self, task_id: str) -> Task:
        task = self._load(task_id)
        if not task.archived:
            raise ConflictError("Task is not archived")
        # The forced move back to backlog is not logged separately
        self._log(task.id, "archived", True, False)
        task.archived = False
        task.status = "backlog"
        task.updated_at = now_ms()
        return self._commit(task)

    def delete(self, task_id: str) -> None:
        task = self._load(task_id)
        self.db.query(ActivityHistory).filter(ActivityHistory.task_id == task.id).delete(
            synchronize_session=False
        )
        self.db.delete(task)
        self._commit()

    def set_active(self, task_id: str) -> Task:
        task = self._load(task_id)
        if task.archived:
            raise ConflictError("Cannot activate archived task")

        now = now_ms()
        for other in self._active_tasks():
            if other.id == task.id:
                continue
            other.is_active = False
            other.updated_at = now
            if self.policy.log_bulk_deactivation:
                self._log(other.id, "isActive", True, False)

        if not task.is_active:
            self._log(task.id, "isActive", bool(task.is_active), True)
        task.is_active = True
        task.updated_at = now
        return self._commit(task)

    def clear_active(self) -> int:
        now = now_ms()
        active = self._active_tasks()
        for task in active:
            task.is_active = False
            task.updated_at = now
            if self.policy.log_bulk_deactivation:
                self._log(task.id, "isActive", True, False)
        self._commit()
        return len(active)

    def import_legacy(self, items: Iterable[dict]) -> int:
        """Bulk-insert already transformed legacy tasks.

        Each item carries ``title, description, status, priority, tags,
        due_date, order, created_at, updated_at``. No dedup is attempted.
        """
        imported = 0
        for item in items:
            title = validate_title(item["title"])
            task = Task(
                title=title,
                description=validate_description(item.get("description")),
                status=validate_status(item["status"]),
                priority=validate_priority(item["priority"]),
                tags=list(validate_tags(item.get("tags", []))),
                due_date=validate_due_date(item.get("due_date")),
                order=_validate_number("order", item["order"]),
                archived=False,
                is_active=False,
                created_at=item["created_at"],
                updated_at=item["updated_at"],
                user_id=self.owner_id,
            )
            self.db.add(task)
            self.db.flush()
            self._log(task.id, activity.MIGRATED, None, {"source": "localStorage", "title": title})
            imported += 1
        self._commit()
        logger.info("Imported %d legacy task(s) for %s", imported, self.owner_id)
        return imported
