from pydantic import BaseModel, Field
from typing import List, Literal, Optional, Union

Status = Literal["backlog", "in_progress", "blocked", "done"]
Priority = Literal["low", "medium", "high", "urgent"]
DueDatePreset = Literal["overdue", "due-today", "due-this-week", "no-due-date"]


class TaskCreate(BaseModel):
    """Schema for creating new tasks."""
    title: str
    description: Optional[str] = None
    status: Status = "backlog"
    priority: Priority = "medium"
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[int] = None
    # Computed from the column when omitted
    order: Optional[float] = None


class TaskUpdate(BaseModel):
    """Partial update; only fields that are sent are applied."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    tags: Optional[List[str]] = None
    due_date: Optional[int] = None
    order: Optional[float] = None


class DueDateRange(BaseModel):
    dueAfter: Optional[str] = None
    dueBefore: Optional[str] = None


class TaskSearch(BaseModel):
    text: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    tags: Optional[List[str]] = None
    due_date: Optional[Union[DueDatePreset, DueDateRange]] = None


class Task(BaseModel):
    """Complete task schema with all fields."""
    id: str
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    tags: List[str]
    due_date: Optional[int] = None
    order: float
    archived: bool
    is_active: bool
    created_at: int
    updated_at: int
    user_id: Optional[str] = None

    class Config:
        from_attributes = True


class TaskSearchResult(BaseModel):
    tasks: List[Task]
    count: int


class MigratedTask(BaseModel):
    """A legacy task already transformed by ``taskboard.migration``."""
    title: str
    description: Optional[str] = None
    status: Status
    priority: Priority
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[int] = None
    order: float
    created_at: int
    updated_at: int


class MigrateRequest(BaseModel):
    tasks: List[MigratedTask]


class MigrateResponse(BaseModel):
    imported: int


class SuccessResponse(BaseModel):
    success: bool = True
