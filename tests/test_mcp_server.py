import asyncio

import pytest
from mcp.server.fastmcp.exceptions import ToolError

import mcp_server
from taskboard.mcp_client import BoardApiError

TASK = {
    "id": "t1",
    "title": "Write docs",
    "description": None,
    "status": "in_progress",
    "priority": "high",
    "tags": ["docs"],
    "dueDate": "Jan 1, 2024",
    "dueDateTimestamp": 1704067200000,
    "order": 1,
    "archived": False,
    "isActive": False,
    "createdAt": "Dec 1, 2023",
    "updatedAt": "Dec 2, 2023",
}


class StubClient:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def request(self, path, method="GET", body=None, params=None):
        self.calls.append({"path": path, "method": method, "body": body, "params": params})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def stub(monkeypatch):
    def install(response=None, error=None):
        client = StubClient(response, error)
        monkeypatch.setattr(mcp_server, "_client", client)
        return client

    return install


def test_list_tasks_groups_by_column(stub):
    stub({"tasks": [TASK, {**TASK, "id": "t2", "title": "Idea", "status": "backlog", "tags": [], "dueDate": None}]})

    text = asyncio.run(mcp_server.list_tasks())

    assert text.index("## Backlog") < text.index("## In Progress")
    assert "[HIGH] Write docs (ID: t1)" in text
    assert "Status: In Progress | Due: Jan 1, 2024 | Tags: docs" in text


def test_list_tasks_on_empty_board(stub):
    stub({"tasks": []})
    assert asyncio.run(mcp_server.list_tasks()) == "No active tasks on the board."


def test_get_task_detail(stub):
    client = stub({"task": TASK})

    text = asyncio.run(mcp_server.get_task("t1"))

    assert client.calls[0]["params"] == {"id": "t1"}
    assert text.startswith("# Task: Write docs")
    assert "Description: No description" in text


def test_create_task_converts_due_date(stub):
    client = stub({"task": TASK})

    text = asyncio.run(mcp_server.create_task("Write docs", priority="high", due_date="2024-01-01"))

    assert text.startswith("Task created successfully.")
    call = client.calls[0]
    assert call["path"] == "/mcp/tasks/create"
    assert call["method"] == "POST"
    assert call["body"] == {
        "title": "Write docs",
        "status": "backlog",
        "priority": "high",
        "tags": [],
        "dueDate": 1704067200000,
    }


def test_create_task_rejects_bad_due_date(stub):
    client = stub({"task": TASK})
    with pytest.raises(ToolError):
        asyncio.run(mcp_server.create_task("x", due_date="tomorrow-ish"))
    assert client.calls == []


def test_update_task_with_empty_due_date_clears_it(stub):
    client = stub({"task": TASK})

    asyncio.run(mcp_server.update_task("t1", title="New", due_date=""))

    assert client.calls[0]["body"] == {"id": "t1", "updates": {"title": "New", "dueDate": None}}


def test_move_task_message(stub):
    stub({"task": {**TASK, "status": "done"}})
    text = asyncio.run(mcp_server.move_task("t1", "done"))
    assert text.startswith("Moved 'Write docs' to Done.")


def test_search_with_range(stub):
    client = stub({"tasks": [TASK], "count": 1})

    text = asyncio.run(mcp_server.search_tasks(text="docs", due_before="2024-02-01"))

    assert client.calls[0]["body"] == {"text": "docs", "dueDate": {"dueBefore": "2024-02-01"}}
    assert text.startswith("Found 1 task(s):")


def test_search_rejects_preset_and_range_together(stub):
    stub({"tasks": [], "count": 0})
    with pytest.raises(ToolError):
        asyncio.run(mcp_server.search_tasks(due_date="overdue", due_after="2024-01-01"))


def test_board_summary(stub):
    columns = {status: {"count": 0, "tasks": []} for status in mcp_server.STATUS_LABELS}
    columns["backlog"]["count"] = 2
    stub({
        "columns": columns,
        "total": 2,
        "overdue": {"count": 1, "tasks": [{"id": "t1", "title": "Late", "dueDate": "Jan 1, 2024"}]},
    })

    text = asyncio.run(mcp_server.get_board_summary())

    assert "Total tasks: 2" in text
    assert "Backlog: 2 tasks" in text
    assert "- Late (due: Jan 1, 2024)" in text


def test_simple_confirmations(stub):
    stub({"success": True})
    assert asyncio.run(mcp_server.delete_task("t1")) == "Task permanently deleted."
    assert asyncio.run(mcp_server.archive_task("t1")) == "Task archived successfully."
    assert asyncio.run(mcp_server.clear_active_task()) == "Active task cleared."

    stub({"task": TASK})
    assert asyncio.run(mcp_server.set_active_task("t1")).startswith("Now actively working on: Write docs")


def test_api_errors_become_tool_errors(stub):
    stub(error=BoardApiError("Task not found with ID: t9", 404))

    with pytest.raises(ToolError) as excinfo:
        asyncio.run(mcp_server.get_task("t9"))

    assert "Task not found with ID: t9" in str(excinfo.value)


def test_missing_configuration(monkeypatch):
    monkeypatch.setattr(mcp_server, "_client", None)
    monkeypatch.delenv("TASKBOARD_SITE_URL", raising=False)
    monkeypatch.setenv("MCP_API_TOKEN", "tok")

    with pytest.raises(ToolError):
        mcp_server.get_client()
    with pytest.raises(SystemExit):
        mcp_server.main()
