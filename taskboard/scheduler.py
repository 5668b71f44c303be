"""Background loop running the daily maintenance job at 02:00 UTC."""
import asyncio
from datetime import datetime, timezone
import logging

from .config import AUTO_ARCHIVE_DAYS
from .database import get_session
from .janitor import archive_stale_done_tasks, cleanup_old_records
from .timeutil import seconds_until

logger = logging.getLogger(__name__)

RUN_HOUR_UTC = 2
RUN_MINUTE_UTC = 0


def run_daily_maintenance() -> dict:
    with get_session() as session:
        deleted = cleanup_old_records(session)
        archived = archive_stale_done_tasks(session, AUTO_ARCHIVE_DAYS)
    return {"deleted": deleted, "archived": archived}


async def maintenance_loop() -> None:
    while True:
        delay = seconds_until(RUN_HOUR_UTC, RUN_MINUTE_UTC, datetime.now(timezone.utc))
        logger.debug("Next maintenance run in %.0f seconds", delay)
        await asyncio.sleep(delay)
        try:
            await asyncio.to_thread(run_daily_maintenance)
        except Exception:
            # Keep the schedule alive; the next run retries
            logger.exception("Daily maintenance failed")


def start_scheduler() -> asyncio.Task:
    logger.info("Scheduling daily maintenance at %02d:%02d UTC", RUN_HOUR_UTC, RUN_MINUTE_UTC)
    return asyncio.get_running_loop().create_task(maintenance_loop())
