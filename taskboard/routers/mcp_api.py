"""Token API: stateless HTTP endpoints used by the MCP tool server.

Callers authenticate with ``Authorization: Bearer <token>`` and act as the
service principal that token resolves to. Every handler maps failures to a
status code with an ``{"error": ...}`` body; nothing escapes unmapped.
"""
import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import ForbiddenError, TaskboardError, ValidationError
from ..formatting import board_summary, format_task, format_tasks
from ..models import VALID_STATUSES
from ..principals import resolve_principal
from ..repository import (
    SERVICE_POLICY,
    TaskRepository,
    validate_due_date,
    validate_priority,
    validate_status,
)

logger = logging.getLogger(__name__)

router = APIRouter()

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Authorization, Content-Type",
    "Access-Control-Max-Age": "86400",
}

BRIDGE_PATHS = (
    "/tasks",
    "/tasks/get",
    "/tasks/create",
    "/tasks/update",
    "/tasks/move",
    "/tasks/delete",
    "/tasks/archive",
    "/tasks/search",
    "/board/summary",
    "/tasks/active",
    "/tasks/active/clear",
)

# Public update keys -> repository field names
UPDATE_FIELDS = {
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "tags": "tags",
    "dueDate": "due_date",
}


def json_response(data, status_code: int = 200) -> JSONResponse:
    return JSONResponse(data, status_code=status_code, headers=CORS_HEADERS)


def error_response(message: str, status_code: int) -> JSONResponse:
    return json_response({"error": message}, status_code)


async def preflight() -> Response:
    return Response(status_code=204, headers=PREFLIGHT_HEADERS)


for _path in BRIDGE_PATHS:
    router.add_api_route(_path, preflight, methods=["OPTIONS"], include_in_schema=False)


async def _read_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _require_id(body: dict) -> str:
    task_id = body.get("id")
    if not task_id or not isinstance(task_id, str):
        raise ValidationError("Missing required field: id")
    return task_id


def _parse_due_date(value) -> Optional[int]:
    """Accept a numeric timestamp (or numeric string) in milliseconds."""
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            raise ValidationError("dueDate must be a timestamp in milliseconds")
    return validate_due_date(value)


def _run(request: Request, db: Session, action: Callable[[TaskRepository], JSONResponse],
         hide_forbidden: bool = False) -> JSONResponse:
    """Authenticate, run ``action`` against the principal's tasks, map errors.

    With ``hide_forbidden`` an ownership failure is reported as not found.
    """
    try:
        principal = resolve_principal(request.headers.get("Authorization"))
        repo = TaskRepository(db, principal.user_id, SERVICE_POLICY)
        return action(repo)
    except ForbiddenError as e:
        return error_response(e.message, 404 if hide_forbidden else e.status_code)
    except TaskboardError as e:
        return error_response(e.message, e.status_code)
    except Exception:
        logger.exception("Unhandled error in %s %s", request.method, request.url.path)
        return error_response("Internal server error", 500)


async def _run_with_body(request: Request, db: Session,
                         action: Callable[[TaskRepository, dict], JSONResponse]) -> JSONResponse:
    try:
        body = await _read_body(request)
    except ValidationError as e:
        # Authentication still takes precedence over a malformed body
        return await run_in_threadpool(
            _run, request, db, lambda repo: error_response(e.message, e.status_code)
        )
    return await run_in_threadpool(_run, request, db, lambda repo: action(repo, body))


@router.get("/tasks")
def list_tasks(request: Request, db: Session = Depends(get_db)):
    return _run(request, db, lambda repo: json_response({"tasks": format_tasks(repo.list())}))


@router.get("/tasks/get")
def get_task(request: Request, db: Session = Depends(get_db)):
    task_id = request.query_params.get("id")

    def action(repo: TaskRepository):
        if not task_id:
            return error_response("Missing required query parameter: id", 400)
        return json_response({"task": format_task(repo.get(task_id))})

    return _run(request, db, action, hide_forbidden=True)


@router.post("/tasks/create")
async def create_task(request: Request, db: Session = Depends(get_db)):
    def action(repo: TaskRepository, body: dict):
        title = body.get("title")
        if not isinstance(title, str) or title.strip() == "":
            raise ValidationError("Title is required and cannot be empty")
        description = body.get("description")
        if description is not None and not isinstance(description, str):
            raise ValidationError("Description must be a string")
        status = body.get("status")
        status = validate_status("backlog" if status is None else status)
        priority = body.get("priority")
        priority = validate_priority("medium" if priority is None else priority)
        tags = body.get("tags")
        if tags is None:
            tags = []
        if not isinstance(tags, list):
            raise ValidationError("Tags must be an array of strings")

        task = repo.create(
            title=title.strip(),
            description=description,
            status=status,
            priority=priority,
            tags=tags,
            due_date=_parse_due_date(body.get("dueDate")),
        )
        return json_response({"task": format_task(task)}, 201)

    return await _run_with_body(request, db, action)


@router.post("/tasks/update")
async def update_task(request: Request, db: Session = Depends(get_db)):
    def action(repo: TaskRepository, body: dict):
        task_id = _require_id(body)
        updates = body.get("updates")
        if not isinstance(updates, dict):
            raise ValidationError("Missing required field: updates (object)")

        unknown = [key for key in updates if key not in UPDATE_FIELDS]
        if unknown:
            raise ValidationError(f"Unknown update field(s): {', '.join(sorted(unknown))}")
        if "status" in updates:
            validate_status(updates["status"])
        if "priority" in updates:
            validate_priority(updates["priority"])

        patch = {UPDATE_FIELDS[key]: value for key, value in updates.items()}
        if "due_date" in patch:
            patch["due_date"] = _parse_due_date(patch["due_date"])

        task = repo.update(task_id, patch)
        return json_response({"task": format_task(task)})

    return await _run_with_body(request, db, action)


@router.post("/tasks/move")
async def move_task(request: Request, db: Session = Depends(get_db)):
    def action(repo: TaskRepository, body: dict):
        task_id = _require_id(body)
        status = body.get("status")
        if status not in VALID_STATUSES:
            raise ValidationError(
                f"Invalid or missing status. Must be one of: {', '.join(VALID_STATUSES)}"
            )
        return json_response({"task": format_task(repo.move(task_id, status))})

    return await _run_with_body(request, db, action)


@router.post("/tasks/delete")
async def delete_task(request: Request, db: Session = Depends(get_db)):
    def action(repo: TaskRepository, body: dict):
        repo.delete(_require_id(body))
        return json_response({"success": True})

    return await _run_with_body(request, db, action)


@router.post("/tasks/archive")
async def archive_task(request: Request, db: Session = Depends(get_db)):
    def action(repo: TaskRepository, body: dict):
        repo.archive(_require_id(body))
        return json_response({"success": True})

    return await _run_with_body(request, db, action)


@router.post("/tasks/search")
async def search_tasks(request: Request, db: Session = Depends(get_db)):
    def action(repo: TaskRepository, body: dict):
        text = body.get("text")
        if text is not None and not isinstance(text, str):
            raise ValidationError("text must be a string")
        tags = body.get("tags")
        if tags is not None and not isinstance(tags, list):
            raise ValidationError("Tags must be an array of strings")

        tasks = repo.search(
            text=text,
            priority=body.get("priority"),
            status=body.get("status"),
            tags=tags,
            due_date=body.get("dueDate"),
        )
        return json_response({"tasks": format_tasks(tasks), "count": len(tasks)})

    return await _run_with_body(request, db, action)


@router.post("/board/summary")
def get_board_summary(request: Request, db: Session = Depends(get_db)):
    return _run(request, db, lambda repo: json_response(board_summary(repo.list())))


@router.get("/tasks/active")
def get_active_task(request: Request, db: Session = Depends(get_db)):
    def action(repo: TaskRepository):
        task = repo.get_active()
        return json_response({"task": format_task(task) if task else None})

    return _run(request, db, action)


@router.post("/tasks/active")
async def set_active_task(request: Request, db: Session = Depends(get_db)):
    def action(repo: TaskRepository, body: dict):
        task = repo.set_active(_require_id(body))
        return json_response({"task": format_task(task)})

    return await _run_with_body(request, db, action)


@router.post("/tasks/active/clear")
def clear_active_task(request: Request, db: Session = Depends(get_db)):
    def action(repo: TaskRepository):
        repo.clear_active()
        return json_response({"success": True})

    return _run(request, db, action)

