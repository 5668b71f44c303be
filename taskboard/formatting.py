"""JSON shapes returned by the token API."""
from typing import Iterable, List, Optional

from .models import VALID_STATUSES, Task
from .timeutil import format_date, now_ms, start_of_day_ms


def format_task(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "tags": list(task.tags or []),
        "dueDate": format_date(task.due_date) if task.due_date is not None else None,
        "dueDateTimestamp": task.due_date,
        "order": task.order,
        "archived": task.archived,
        "isActive": bool(task.is_active),
        "createdAt": format_date(task.created_at),
        "updatedAt": format_date(task.updated_at),
    }


def format_tasks(tasks: Iterable[Task]) -> List[dict]:
    return [format_task(task) for task in tasks]


def board_summary(tasks: List[Task], now: Optional[int] = None) -> dict:
    """Per-column counts and stubs, plus overdue tasks that are not done."""
    today_start = start_of_day_ms(now_ms() if now is None else now)
    columns = {status: {"count": 0, "tasks": []} for status in VALID_STATUSES}
    overdue = []

    for task in tasks:
        column = columns.get(task.status)
        if column is not None:
            column["count"] += 1
            column["tasks"].append({"id": task.id, "title": task.title, "priority": task.priority})

        if task.due_date is not None and task.due_date < today_start and task.status != "done":
            overdue.append({"id": task.id, "title": task.title, "dueDate": format_date(task.due_date)})

    return {
        "columns": columns,
        "total": len(tasks),
        "overdue": {"count": len(overdue), "tasks": overdue},
    }
