"""Task filtering for board search.

Filters are applied one category at a time and combine with AND; the tag
filter matches a task carrying any of the requested tags.
"""
from typing import Iterable, List, Optional, Union

from .errors import ValidationError
from .models import Task
from .timeutil import DAY_MS, js_day_of_week, now_ms, parse_iso_ms, start_of_day_ms

DUE_DATE_PRESETS = ("overdue", "due-today", "due-this-week", "no-due-date")

DueDateFilter = Union[str, dict, None]


def matches_text(task: Task, text: str) -> bool:
    needle = text.lower()
    if needle in task.title.lower():
        return True
    return bool(task.description) and needle in task.description.lower()


def _parse_bound(value, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an ISO date string")
    try:
        return parse_iso_ms(value)
    except ValueError:
        raise ValidationError(f"Invalid {name} date: {value!r}")


def due_date_predicate(due_date: DueDateFilter, now: Optional[int] = None):
    """Build a predicate for a preset name or a ``{dueAfter, dueBefore}`` range."""
    now = now_ms() if now is None else now
    today_start = start_of_day_ms(now)
    today_end = today_start + DAY_MS

    if isinstance(due_date, str):
        if due_date == "overdue":
            return lambda t: t.due_date is not None and t.due_date < today_start
        if due_date == "due-today":
            return lambda t: t.due_date is not None and today_start <= t.due_date < today_end
        if due_date == "due-this-week":
            week_end = today_start + (7 - js_day_of_week(now)) * DAY_MS
            return lambda t: t.due_date is not None and today_start <= t.due_date < week_end
        if due_date == "no-due-date":
            return lambda t: t.due_date is None
        raise ValidationError(
            f'Invalid dueDate preset: "{due_date}". Must be one of: {", ".join(DUE_DATE_PRESETS)}'
        )

    if isinstance(due_date, dict):
        after = _parse_bound(due_date.get("dueAfter"), "dueAfter")
        before = _parse_bound(due_date.get("dueBefore"), "dueBefore")

        def in_range(t: Task) -> bool:
            if after is None and before is None:
                return True
            if t.due_date is None:
                return False
            if after is not None and t.due_date < after:
                return False
            if before is not None and t.due_date > before:
                return False
            return True

        return in_range

    raise ValidationError("dueDate must be a preset name or a {dueAfter, dueBefore} object")


def filter_tasks(
    tasks: Iterable[Task],
    text: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    tags: Optional[List[str]] = None,
    due_date: DueDateFilter = None,
    now: Optional[int] = None,
) -> List[Task]:
    result = list(tasks)

    if text:
        result = [t for t in result if matches_text(t, text)]
    if priority:
        result = [t for t in result if t.priority == priority]
    if status:
        result = [t for t in result if t.status == status]
    if tags:
        wanted = set(tags)
        result = [t for t in result if wanted.intersection(t.tags or [])]
    if due_date:
        predicate = due_date_predicate(due_date, now)
        result = [t for t in result if predicate(t)]

    return result
