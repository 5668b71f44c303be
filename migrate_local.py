"""Import tasks exported from the old browser-only board.

    python migrate_local.py export.json user@example.com

The export is the ``{"tasks": [...]}`` document the old board kept in local
storage. Invalid entries are skipped. A marker file records the import so the
same export is not loaded twice by accident; pass ``--force`` to ignore it.
"""
import argparse
import logging
import sys
from pathlib import Path

from taskboard.database import create_tables, get_session
from taskboard.migration import MigrationFlag, prepare_import, read_legacy_tasks
from taskboard.models import User
from taskboard.repository import TaskRepository

logger = logging.getLogger("migrate_local")

DEFAULT_FLAG_PATH = Path(".taskboard-migrated")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import legacy local-storage tasks")
    parser.add_argument("export", type=Path, help="Path to the legacy JSON export")
    parser.add_argument("email", help="Email of the user who will own the tasks")
    parser.add_argument("--flag", type=Path, default=DEFAULT_FLAG_PATH, help="Migration marker file")
    parser.add_argument("--force", action="store_true", help="Import even if already migrated")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    flag = MigrationFlag(args.flag)
    if flag.has_migrated() and not args.force:
        logger.info("Already migrated (%s exists); use --force to import again", args.flag)
        return 0

    raw_tasks = read_legacy_tasks(args.export)
    if raw_tasks is None:
        logger.error("Could not read legacy tasks from %s", args.export)
        return 1

    items = prepare_import(raw_tasks)
    if not items:
        logger.info("No valid legacy tasks found")
        flag.mark_migrated()
        return 0

    create_tables()
    with get_session() as db:
        user = db.query(User).filter(User.email == args.email).first()
        if user is None:
            logger.error("No user with email %s", args.email)
            return 1
        imported = TaskRepository(db, user.id).import_legacy(items)

    flag.mark_migrated()
    print(f"Imported {imported} task(s) for {args.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
