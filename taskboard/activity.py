"""Activity history: the append-only per-field change log for tasks.

Values are stored as JSON text so numbers, booleans, lists and strings keep
their type through a single text column. ``encode_value`` and ``decode_value``
are the only functions that should read or write that text.
"""
import json
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from .models import ActivityHistory, Task

CREATED = "_created"
MIGRATED = "_migrated"
DELETED_TASK_TITLE = "[Deleted Task]"
DEFAULT_RECENT_LIMIT = 50


def _normalize(value: Any) -> Any:
    # Integral floats encode like integers so 1 and 1.0 compare equal
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, list):
        return [_normalize(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize(item) for key, item in value.items()}
    return value


def encode_value(value: Any) -> Optional[str]:
    """Serialize a field value for storage. ``None`` is stored as absent."""
    if value is None:
        return None
    return json.dumps(_normalize(value), separators=(",", ":"), ensure_ascii=False)


def decode_value(text: Optional[str]) -> Any:
    if text is None:
        return None
    return json.loads(text)


def values_differ(old: Any, new: Any) -> bool:
    """Compare two field values by their canonical encoding."""
    return encode_value(old) != encode_value(new)


def record_change(
    db: Session,
    task_id: str,
    field: str,
    old: Any,
    new: Any,
    user_id: Optional[str],
) -> ActivityHistory:
    """Stage one history entry on ``db``; the caller commits."""
    entry = ActivityHistory(
        task_id=task_id,
        field=field,
        old_value=encode_value(old),
        new_value=encode_value(new),
        user_id=user_id,
    )
    db.add(entry)
    return entry


def task_history(db: Session, task_id: str) -> List[ActivityHistory]:
    """All entries for a task, most recent first."""
    return (
        db.query(ActivityHistory)
        .filter(ActivityHistory.task_id == task_id)
        .order_by(ActivityHistory.created_at.desc(), ActivityHistory.id.desc())
        .all()
    )


def recent_activity(db: Session, user_id: str, limit: int = DEFAULT_RECENT_LIMIT) -> List[dict]:
    """Latest entries for an owner, joined with the task's current title."""
    entries = (
        db.query(ActivityHistory)
        .filter(ActivityHistory.user_id == user_id)
        .order_by(ActivityHistory.created_at.desc(), ActivityHistory.id.desc())
        .limit(limit)
        .all()
    )
    task_ids = {entry.task_id for entry in entries}
    titles = {}
    if task_ids:
        rows = db.query(Task.id, Task.title).filter(Task.id.in_(task_ids)).all()
        titles = {task_id: title for task_id, title in rows}

    return [
        {**serialize_entry(entry), "task_title": titles.get(entry.task_id, DELETED_TASK_TITLE)}
        for entry in entries
    ]


def serialize_entry(entry: ActivityHistory) -> dict:
    return {
        "id": entry.id,
        "task_id": entry.task_id,
        "field": entry.field,
        "old_value": decode_value(entry.old_value),
        "new_value": decode_value(entry.new_value),
        "user_id": entry.user_id,
        "created_at": entry.created_at,
    }
