"""Daily maintenance: activity history retention and auto-archiving.

Scheduled by ``taskboard.scheduler``; not reachable over HTTP.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from .models import ActivityHistory, Task
from .repository import SESSION_POLICY, TaskRepository
from .timeutil import DAY_MS, now_ms

logger = logging.getLogger(__name__)

RETENTION_DAYS = 90
CLEANUP_BATCH_SIZE = 1000


def cleanup_old_records(db: Session, now: Optional[int] = None) -> int:
    """Delete up to one batch of history rows older than the retention window.

    A larger backlog is drained over several runs.
    """
    cutoff = (now_ms() if now is None else now) - RETENTION_DAYS * DAY_MS
    ids = [
        row_id
        for (row_id,) in db.query(ActivityHistory.id)
        .filter(ActivityHistory.created_at < cutoff)
        .limit(CLEANUP_BATCH_SIZE)
        .all()
    ]
    if ids:
        db.query(ActivityHistory).filter(ActivityHistory.id.in_(ids)).delete(
            synchronize_session=False
        )
        db.commit()

    logger.info("Activity history cleanup: deleted %d records older than %d days", len(ids), RETENTION_DAYS)
    return len(ids)


def archive_stale_done_tasks(db: Session, days: int, now: Optional[int] = None) -> int:
    """Archive tasks that have sat in ``done`` for more than ``days`` days."""
    if days <= 0:
        return 0
    cutoff = (now_ms() if now is None else now) - days * DAY_MS
    stale = (
        db.query(Task)
        .filter(
            Task.status == "done",
            Task.archived.is_(False),
            Task.updated_at < cutoff,
            Task.user_id.isnot(None),
        )
        .all()
    )
    for task in stale:
        TaskRepository(db, task.user_id, SESSION_POLICY).archive(task.id)

    if stale:
        logger.info("Auto-archived %d task(s) done for more than %d days", len(stale), days)
    return len(stale)
