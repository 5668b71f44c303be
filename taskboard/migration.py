"""Legacy task import: validate and transform tasks saved by the old
browser-only board (``{"tasks": [...]}`` as written to local storage).

These functions are pure apart from ``read_legacy_tasks`` and
``MigrationFlag``; the server side of the import is
``TaskRepository.import_legacy``.
"""
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from .timeutil import now_ms, parse_iso_ms

logger = logging.getLogger(__name__)

# Legacy status values use hyphens
STATUS_MAP = {
    "backlog": "backlog",
    "in-progress": "in_progress",
    "blocked": "blocked",
    "done": "done",
}

# Legacy priorities were coded p0 (most urgent) to p3
PRIORITY_MAP = {
    "p0": "urgent",
    "p1": "high",
    "p2": "medium",
    "p3": "low",
}

VALID_OLD_STATUSES = ("backlog", "in-progress", "blocked", "done")

_OPTIONAL_STRINGS = ("description", "priority", "tag", "dueDate")
_OPTIONAL_NUMBERS = ("createdAt", "startedAt", "completedAt", "blockedSince")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_valid_v1_task(task: Any) -> bool:
    """Check required fields and the types of optional ones, if present."""
    if not isinstance(task, dict):
        return False

    if not isinstance(task.get("id"), str) or task["id"] == "":
        return False
    if not isinstance(task.get("title"), str) or task["title"].strip() == "":
        return False
    if task.get("status") not in VALID_OLD_STATUSES:
        return False

    for key in _OPTIONAL_STRINGS:
        if key in task and not isinstance(task[key], str):
            return False
    for key in _OPTIONAL_NUMBERS:
        if key in task and not _is_number(task[key]):
            return False
    if "archived" in task and not isinstance(task["archived"], bool):
        return False
    blocked_reason = task.get("blockedReason")
    if blocked_reason is not None and not isinstance(blocked_reason, str):
        return False

    return True


def _parse_due_date(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return parse_iso_ms(value)
    except ValueError:
        # Unparsable dates import as "no due date"
        return None


def transform_task(task: dict, order: int, now: Optional[int] = None) -> dict:
    """Map a validated legacy task onto the current task shape."""
    created_at = task.get("createdAt")
    if created_at is None:
        created_at = now_ms() if now is None else now

    return {
        "title": task["title"],
        "description": task.get("description") or None,
        "status": STATUS_MAP.get(task["status"], "backlog"),
        "priority": PRIORITY_MAP.get(task.get("priority"), "medium"),
        "tags": [task["tag"]] if task.get("tag") else [],
        "due_date": _parse_due_date(task.get("dueDate")),
        "order": order,
        # Both stamps keep the legacy creation time so relative order survives
        "created_at": created_at,
        "updated_at": created_at,
    }


def prepare_import(raw_tasks: List[Any], now: Optional[int] = None) -> List[dict]:
    """Drop archived and invalid entries, then transform the rest in order."""
    live = [task for task in raw_tasks if not (isinstance(task, dict) and task.get("archived") is True)]
    if len(live) < len(raw_tasks):
        logger.info("Skipping %d archived legacy task(s)", len(raw_tasks) - len(live))
    valid = [task for task in live if is_valid_v1_task(task)]
    skipped = len(live) - len(valid)
    if skipped:
        logger.info("Skipping %d invalid legacy task(s)", skipped)
    return [transform_task(task, order, now) for order, task in enumerate(valid)]


def read_legacy_tasks(path: Path) -> Optional[List[Any]]:
    """Read a legacy export file. Returns None if missing or malformed."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
        return None
    return data["tasks"]


class MigrationFlag:
    """Advisory local marker recording that an import was done or skipped.

    Clearing it and importing again duplicates tasks; the server does not
    dedupe by legacy ID.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def has_migrated(self) -> bool:
        return self.path.exists() and self.path.read_text(encoding="utf-8").strip() == "true"

    def mark_migrated(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("true", encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
