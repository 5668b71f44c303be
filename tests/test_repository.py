import pytest

from taskboard import activity
from taskboard.errors import (
    ConflictError,
    ForbiddenError,
    InvalidEnumError,
    NotFoundError,
    ValidationError,
)
from taskboard.models import ActivityHistory, Task
from taskboard.repository import SERVICE_POLICY, TaskRepository


def _fields(entries):
    return [entry.field for entry in entries]


def _is_active_entries(db, task_id):
    return (
        db.query(ActivityHistory)
        .filter(ActivityHistory.task_id == task_id, ActivityHistory.field == "isActive")
        .all()
    )


def test_create_in_empty_column_gets_order_one_and_created_entry(repo):
    task = repo.create("Write docs")

    assert task.status == "backlog"
    assert task.priority == "medium"
    assert task.order == 1
    assert task.archived is False
    assert task.is_active is False
    assert task.created_at == task.updated_at

    history = repo.history(task.id)
    assert len(history) == 1
    assert history[0].field == activity.CREATED
    assert history[0].old_value is None
    assert activity.decode_value(history[0].new_value) == {"title": "Write docs", "status": "backlog"}


def test_create_appends_to_bottom_of_its_column(repo):
    repo.create("first")
    second = repo.create("second")
    elsewhere = repo.create("other column", status="done")

    assert second.order == 2
    assert elsewhere.order == 1


def test_create_honors_explicit_order(repo):
    task = repo.create("pinned", order=0.5)
    assert task.order == 0.5


def test_create_trims_title(repo):
    assert repo.create("  padded  ").title == "padded"


def test_create_rejects_invalid_status_without_writing(repo, db):
    with pytest.raises(InvalidEnumError) as excinfo:
        repo.create("bad", status="todo")

    assert 'Invalid status: "todo"' in excinfo.value.message
    assert db.query(Task).count() == 0
    assert db.query(ActivityHistory).count() == 0


def test_create_rejects_blank_title(repo):
    with pytest.raises(ValidationError):
        repo.create("   ")


def test_create_rejects_invalid_priority(repo):
    with pytest.raises(InvalidEnumError):
        repo.create("x", priority="p0")


def test_update_logs_each_changed_field(repo):
    task = repo.create("Task", priority="low")
    repo.update(task.id, {"priority": "high", "tags": ["a", "b"], "due_date": 1704067200000})

    entries = {entry.field: entry for entry in repo.history(task.id)}
    assert activity.decode_value(entries["priority"].old_value) == "low"
    assert activity.decode_value(entries["priority"].new_value) == "high"
    assert activity.decode_value(entries["tags"].old_value) == []
    assert activity.decode_value(entries["tags"].new_value) == ["a", "b"]
    assert entries["dueDate"].old_value is None
    assert activity.decode_value(entries["dueDate"].new_value) == 1704067200000


def test_update_with_same_value_logs_nothing(repo):
    task = repo.create("Task")
    before = len(repo.history(task.id))

    updated = repo.update(task.id, {"status": "backlog"})

    assert updated.status == "backlog"
    assert len(repo.history(task.id)) == before


def test_update_stores_trimmed_title_but_logs_raw_input(repo):
    task = repo.create("Old")
    updated = repo.update(task.id, {"title": "  New  "})

    assert updated.title == "New"
    entry = [e for e in repo.history(task.id) if e.field == "title"][0]
    assert activity.decode_value(entry.new_value) == "  New  "


def test_update_bumps_updated_at(repo):
    task = repo.create("Task")
    created = task.updated_at
    updated = repo.update(task.id, {"priority": "urgent"})
    assert updated.updated_at >= created


def test_update_rejects_unknown_and_null_fields(repo):
    task = repo.create("Task")
    with pytest.raises(ValidationError):
        repo.update(task.id, {"archived": True})
    with pytest.raises(ValidationError):
        repo.update(task.id, {"title": None})


def test_update_clears_nullable_fields(repo):
    task = repo.create("Task", description="details", due_date=1704067200000)
    updated = repo.update(task.id, {"description": None, "due_date": None})

    assert updated.description is None
    assert updated.due_date is None
    entry = [e for e in repo.history(task.id) if e.field == "description"][0]
    assert activity.decode_value(entry.old_value) == "details"
    assert entry.new_value is None


def test_update_archived_task_conflicts_on_session_path(repo):
    task = repo.create("Task")
    repo.archive(task.id)

    with pytest.raises(ConflictError):
        repo.update(task.id, {"title": "New"})


def test_update_archived_task_allowed_on_service_path(repo, service_repo):
    task = repo.create("Task")
    repo.archive(task.id)

    assert service_repo.update(task.id, {"title": "New"}).title == "New"


def test_move_changes_status_and_logs(repo):
    task = repo.create("Task")
    moved = repo.move(task.id, "in_progress")

    assert moved.status == "in_progress"
    entry = repo.history(task.id)[0]
    assert entry.field == "status"
    assert activity.decode_value(entry.old_value) == "backlog"
    assert activity.decode_value(entry.new_value) == "in_progress"


def test_move_rejects_invalid_status(repo):
    task = repo.create("Task")
    with pytest.raises(InvalidEnumError):
        repo.move(task.id, "archived")


def test_archive_then_restore_returns_to_backlog(repo):
    task = repo.create("Task", status="in_progress")
    repo.archive(task.id)
    restored = repo.restore(task.id)

    assert restored.archived is False
    assert restored.status == "backlog"
    archived_entries = [e for e in repo.history(task.id) if e.field == "archived"]
    assert [activity.decode_value(e.new_value) for e in archived_entries] == [False, True]


def test_archive_twice_logs_once(repo):
    task = repo.create("Task")
    repo.archive(task.id)
    repo.archive(task.id)

    assert _fields(repo.history(task.id)).count("archived") == 1


def test_restore_requires_archived_task(repo):
    task = repo.create("Task")
    with pytest.raises(ConflictError):
        repo.restore(task.id)


def test_list_excludes_archived_tasks(repo):
    keep = repo.create("keep")
    gone = repo.create("gone")
    repo.archive(gone.id)

    assert [t.id for t in repo.list()] == [keep.id]
    assert [t.id for t in repo.list_archived()] == [gone.id]


def test_list_by_status(repo):
    repo.create("a", status="blocked")
    repo.create("b")

    assert [t.title for t in repo.list_by_status("blocked")] == ["a"]
    with pytest.raises(InvalidEnumError):
        repo.list_by_status("nope")


def test_only_one_task_is_active(repo):
    a = repo.create("A")
    b = repo.create("B")

    repo.set_active(a.id)
    repo.set_active(b.id)

    active = [t for t in repo.list() if t.is_active]
    assert [t.id for t in active] == [b.id]
    assert repo.get_active().id == b.id


def test_session_set_active_logs_deactivation_and_activation(repo, db):
    a = repo.create("A")
    b = repo.create("B")
    repo.set_active(a.id)
    assert len(_is_active_entries(db, a.id)) == 1

    repo.set_active(b.id)

    a_entries = _is_active_entries(db, a.id)
    b_entries = _is_active_entries(db, b.id)
    assert len(a_entries) + len(b_entries) == 3
    assert [activity.decode_value(e.new_value) for e in b_entries] == [True]
    assert sorted(activity.decode_value(e.new_value) for e in a_entries) == [False, True]


def test_service_set_active_does_not_log_deactivations(service_repo, db):
    a = service_repo.create("A")
    b = service_repo.create("B")
    service_repo.set_active(a.id)
    service_repo.set_active(b.id)

    assert len(_is_active_entries(db, a.id)) == 1
    assert len(_is_active_entries(db, b.id)) == 1


def test_set_active_on_already_active_task_logs_nothing(repo, db):
    a = repo.create("A")
    repo.set_active(a.id)
    repo.set_active(a.id)

    assert len(_is_active_entries(db, a.id)) == 1


def test_set_active_rejects_archived_task(repo):
    task = repo.create("Task")
    repo.archive(task.id)

    with pytest.raises(ConflictError):
        repo.set_active(task.id)


def test_clear_active(repo, db):
    a = repo.create("A")
    repo.set_active(a.id)

    assert repo.clear_active() == 1
    assert repo.get_active() is None
    assert len(_is_active_entries(db, a.id)) == 2
    assert repo.clear_active() == 0


def test_delete_removes_task_and_history(repo, db):
    task = repo.create("Task")
    repo.update(task.id, {"priority": "high"})
    task_id = task.id

    repo.delete(task_id)

    assert db.get(Task, task_id) is None
    assert db.query(ActivityHistory).filter(ActivityHistory.task_id == task_id).count() == 0


def test_missing_task_is_not_found(repo):
    with pytest.raises(NotFoundError) as excinfo:
        repo.get("missing")
    assert excinfo.value.message == "Task not found with ID: missing"


def test_other_owners_task_is_forbidden(db, repo, other_user):
    task = repo.create("mine")
    intruder = TaskRepository(db, other_user.id)

    for action in (
        lambda: intruder.get(task.id),
        lambda: intruder.update(task.id, {"title": "x"}),
        lambda: intruder.archive(task.id),
        lambda: intruder.delete(task.id),
        lambda: intruder.set_active(task.id),
        lambda: intruder.history(task.id),
    ):
        with pytest.raises(ForbiddenError):
            action()

    assert intruder.list() == []


def test_search_validates_enums(repo):
    with pytest.raises(InvalidEnumError):
        repo.search(priority="p1")
    with pytest.raises(InvalidEnumError):
        repo.search(status="todo")


def test_search_skips_archived_tasks(repo):
    keep = repo.create("report draft")
    gone = repo.create("report final")
    repo.archive(gone.id)

    assert [t.id for t in repo.search(text="report")] == [keep.id]


def test_import_legacy_writes_tasks_and_migrated_entries(repo):
    imported = repo.import_legacy([
        {
            "title": "Old task",
            "description": None,
            "status": "in_progress",
            "priority": "urgent",
            "tags": ["ops"],
            "due_date": 1704067200000,
            "order": 0,
            "created_at": 1700000000000,
            "updated_at": 1700000000000,
        }
    ])

    assert imported == 1
    task = repo.list()[0]
    assert task.title == "Old task"
    assert task.created_at == 1700000000000
    assert task.archived is False and task.is_active is False
    entry = repo.history(task.id)[0]
    assert entry.field == activity.MIGRATED
    assert activity.decode_value(entry.new_value) == {"source": "localStorage", "title": "Old task"}


def test_service_policy_is_distinct():
    assert SERVICE_POLICY.allow_archived_updates is True
    assert SERVICE_POLICY.log_bulk_deactivation is False


def test_create_rejects_non_string_description(repo, db):
    with pytest.raises(ValidationError):
        repo.create("Task", description=5)
    assert db.query(Task).count() == 0


def test_update_rejects_non_string_description(repo):
    task = repo.create("Task", description="text")
    with pytest.raises(ValidationError):
        repo.update(task.id, {"description": 5})
    assert repo.get(task.id).description == "text"


def test_due_date_must_be_a_finite_timestamp_in_range(repo):
    for bad in (float("inf"), float("nan"), 10 ** 20, "tomorrow"):
        with pytest.raises(ValidationError):
            repo.create("Task", due_date=bad)

    task = repo.create("Task", due_date=1704067200000.0)
    assert task.due_date == 1704067200000
    with pytest.raises(ValidationError):
        repo.update(task.id, {"due_date": -(10 ** 20)})


def test_search_rejects_non_string_tags(repo):
    repo.create("Task", tags=["a"])
    with pytest.raises(ValidationError):
        repo.search(tags=[{"a": 1}])
