"""Task board MCP server.

Exposes the board to AI agents as MCP tools over stdio. Every tool makes one
call to the token API (``/mcp/*``) and renders the JSON result as text. Failed
calls raise ``ToolError``, which the MCP server returns as an ``isError``
result instead of breaking the session.

Requires ``TASKBOARD_SITE_URL`` and ``MCP_API_TOKEN``.
"""
import logging
import os
import sys
from typing import List, Literal, Optional

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from taskboard.mcp_client import BoardApiClient, BoardApiError
from taskboard.timeutil import parse_iso_ms

logger = logging.getLogger("mcp_server")

mcp = FastMCP("taskboard")

Status = Literal["backlog", "in_progress", "blocked", "done"]
Priority = Literal["low", "medium", "high", "urgent"]
DueDatePreset = Literal["overdue", "due-today", "due-this-week", "no-due-date"]

STATUS_LABELS = {
    "backlog": "Backlog",
    "in_progress": "In Progress",
    "blocked": "Blocked",
    "done": "Done",
}

_client: Optional[BoardApiClient] = None


def _missing_config() -> List[str]:
    return [name for name in ("TASKBOARD_SITE_URL", "MCP_API_TOKEN") if not os.getenv(name)]


def get_client() -> BoardApiClient:
    global _client
    if _client is None:
        missing = _missing_config()
        if missing:
            raise ToolError(f"Missing required environment variable(s): {', '.join(missing)}")
        _client = BoardApiClient(os.environ["TASKBOARD_SITE_URL"], os.environ["MCP_API_TOKEN"])
    return _client


async def _call(path: str, method: str = "GET", body=None, params=None):
    try:
        return await get_client().request(path, method=method, body=body, params=params)
    except BoardApiError as e:
        raise ToolError(e.message) from e


def _due_timestamp(value: str) -> int:
    try:
        return parse_iso_ms(value)
    except ValueError:
        raise ToolError(f"Invalid due date: {value!r}. Use an ISO date such as 2026-02-15")


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------


def _label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def format_task_line(task: dict) -> str:
    details = [f"Status: {_label(task['status'])}"]
    if task.get("dueDate"):
        details.append(f"Due: {task['dueDate']}")
    if task.get("tags"):
        details.append(f"Tags: {', '.join(task['tags'])}")
    return (
        f"[{task['priority'].upper()}] {task['title']} (ID: {task['id']})\n"
        f"  {' | '.join(details)}"
    )


def format_task_detail(task: dict) -> str:
    tags = ", ".join(task["tags"]) if task.get("tags") else "None"
    return "\n".join([
        f"# Task: {task['title']}",
        f"ID: {task['id']}",
        f"Status: {_label(task['status'])}",
        f"Priority: {task['priority'].upper()}",
        f"Description: {task.get('description') or 'No description'}",
        f"Tags: {tags}",
        f"Due Date: {task.get('dueDate') or 'No due date'}",
        f"Created: {task['createdAt']}",
        f"Updated: {task['updatedAt']}",
    ])


def format_confirmation(action: str, task: dict) -> str:
    lines = [
        action,
        "",
        f"Title: {task['title']}",
        f"ID: {task['id']}",
        f"Status: {_label(task['status'])}",
        f"Priority: {task['priority'].upper()}",
    ]
    if task.get("description"):
        lines.append(f"Description: {task['description']}")
    if task.get("tags"):
        lines.append(f"Tags: {', '.join(task['tags'])}")
    if task.get("dueDate"):
        lines.append(f"Due Date: {task['dueDate']}")
    return "\n".join(lines)


def format_board(tasks: List[dict]) -> str:
    if not tasks:
        return "No active tasks on the board."

    sections = []
    for status in STATUS_LABELS:
        column = [task for task in tasks if task["status"] == status]
        if not column:
            continue
        sections.append(f"## {_label(status)}")
        sections.extend(format_task_line(task) for task in column)
        sections.append("")
    return "\n".join(sections).rstrip()


def format_summary(data: dict) -> str:
    columns = data["columns"]
    lines = [
        "# Board Summary",
        f"Total tasks: {data['total']}",
        "",
        "## Columns",
    ]
    lines.extend(f"{_label(status)}: {columns[status]['count']} tasks" for status in STATUS_LABELS)

    overdue = data["overdue"]
    if overdue["count"] > 0:
        lines.append("")
        lines.append(f"## Overdue Tasks ({overdue['count']})")
        lines.extend(f"- {task['title']} (due: {task['dueDate']})" for task in overdue["tasks"])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Read tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def list_tasks() -> str:
    """List all active (non-archived) tasks on the board, grouped by column."""
    data = await _call("/mcp/tasks")
    return format_board(data["tasks"])


@mcp.tool()
async def get_task(task_id: str) -> str:
    """Get full details of a specific task by its ID.

    Args:
        task_id: The task ID
    """
    data = await _call("/mcp/tasks/get", params={"id": task_id})
    return format_task_detail(data["task"])


@mcp.tool()
async def search_tasks(
    text: Optional[str] = None,
    priority: Optional[Priority] = None,
    status: Optional[Status] = None,
    tags: Optional[List[str]] = None,
    due_date: Optional[DueDatePreset] = None,
    due_after: Optional[str] = None,
    due_before: Optional[str] = None,
) -> str:
    """Search tasks by text, priority, status, tags, or due date.

    Args:
        text: Search text (matches title and description)
        priority: Filter by priority
        status: Filter by status (column)
        tags: Filter by tags (matches any)
        due_date: Named due date preset
        due_after: ISO date; only tasks due on or after it
        due_before: ISO date; only tasks due on or before it
    """
    if due_date and (due_after or due_before):
        raise ToolError("Use either a due_date preset or a due_after/due_before range, not both")

    body = {}
    if text is not None:
        body["text"] = text
    if priority is not None:
        body["priority"] = priority
    if status is not None:
        body["status"] = status
    if tags is not None:
        body["tags"] = tags
    if due_date is not None:
        body["dueDate"] = due_date
    elif due_after or due_before:
        body["dueDate"] = {
            key: value
            for key, value in (("dueAfter", due_after), ("dueBefore", due_before))
            if value
        }

    data = await _call("/mcp/tasks/search", method="POST", body=body)
    if not data["tasks"]:
        return "No tasks match the search criteria."

    lines = [f"Found {data['count']} task(s):", ""]
    for task in data["tasks"]:
        lines.append(format_task_line(task))
        lines.append("")
    return "\n".join(lines).rstrip()


@mcp.tool()
async def get_board_summary() -> str:
    """Get a summary of the board with task counts per column and overdue tasks."""
    data = await _call("/mcp/board/summary", method="POST", body={})
    return format_summary(data)


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def create_task(
    title: str,
    description: Optional[str] = None,
    status: Status = "backlog",
    priority: Priority = "medium",
    tags: Optional[List[str]] = None,
    due_date: Optional[str] = None,
) -> str:
    """Create a new task on the board.

    Args:
        title: Task title
        description: Task description
        status: Column (defaults to backlog)
        priority: Priority (defaults to medium)
        tags: Tags
        due_date: Due date as ISO string (e.g. 2026-02-15)
    """
    body = {"title": title, "status": status, "priority": priority, "tags": tags or []}
    if description is not None:
        body["description"] = description
    if due_date:
        body["dueDate"] = _due_timestamp(due_date)

    data = await _call("/mcp/tasks/create", method="POST", body=body)
    return format_confirmation("Task created successfully.", data["task"])


@mcp.tool()
async def update_task(
    task_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[Priority] = None,
    tags: Optional[List[str]] = None,
    due_date: Optional[str] = None,
) -> str:
    """Update fields of an existing task. Use move_task to change its column.

    Args:
        task_id: Task ID to update
        title: New title
        description: New description
        priority: New priority
        tags: New tags (replaces existing)
        due_date: New due date as ISO string, or empty string to clear it
    """
    updates = {}
    if title is not None:
        updates["title"] = title
    if description is not None:
        updates["description"] = description
    if priority is not None:
        updates["priority"] = priority
    if tags is not None:
        updates["tags"] = tags
    if due_date is not None:
        updates["dueDate"] = _due_timestamp(due_date) if due_date else None

    data = await _call("/mcp/tasks/update", method="POST", body={"id": task_id, "updates": updates})
    return format_confirmation("Task updated successfully.", data["task"])


@mcp.tool()
async def move_task(task_id: str, status: Status) -> str:
    """Move a task to a different column (status).

    Args:
        task_id: Task ID to move
        status: Target column
    """
    data = await _call("/mcp/tasks/move", method="POST", body={"id": task_id, "status": status})
    task = data["task"]
    return (
        f"Moved '{task['title']}' to {_label(status)}.\n\n"
        f"ID: {task['id']}\n"
        f"Priority: {task['priority'].upper()}"
    )


@mcp.tool()
async def delete_task(task_id: str) -> str:
    """Permanently delete a task and its history (cannot be undone).

    Args:
        task_id: Task ID to permanently delete
    """
    await _call("/mcp/tasks/delete", method="POST", body={"id": task_id})
    return "Task permanently deleted."


@mcp.tool()
async def archive_task(task_id: str) -> str:
    """Archive a task (soft delete, can be restored from the board).

    Args:
        task_id: Task ID to archive
    """
    await _call("/mcp/tasks/archive", method="POST", body={"id": task_id})
    return "Task archived successfully."


@mcp.tool()
async def set_active_task(task_id: str) -> str:
    """Set a task as the one currently being worked on.

    Args:
        task_id: Task ID to set as active
    """
    data = await _call("/mcp/tasks/active", method="POST", body={"id": task_id})
    task = data["task"]
    return (
        f"Now actively working on: {task['title']}\n\n"
        f"ID: {task['id']}\n"
        f"Status: {_label(task['status'])}\n"
        f"Priority: {task['priority'].upper()}"
    )


@mcp.tool()
async def clear_active_task() -> str:
    """Clear the currently active task."""
    await _call("/mcp/tasks/active/clear", method="POST", body={})
    return "Active task cleared."


def main() -> None:
    """Run the MCP server over stdio transport."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s", stream=sys.stderr)

    missing = _missing_config()
    if missing:
        logger.error("Missing required environment variable(s): %s", ", ".join(missing))
        sys.exit(1)

    logger.info("Task board MCP server starting on stdio transport")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
