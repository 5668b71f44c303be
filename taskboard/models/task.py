from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List
from uuid import uuid4

from ..timeutil import now_ms

VALID_STATUSES = ("backlog", "in_progress", "blocked", "done")
VALID_PRIORITIES = ("low", "medium", "high", "urgent")

# Python attribute -> public field name used in activity history
TRACKED_FIELDS = {
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "tags": "tags",
    "due_date": "dueDate",
    "order": "order",
    "archived": "archived",
    "is_active": "isActive",
}


class Task(SQLModel, table=True):
    """A card on the board, owned by one user."""
    __tablename__ = "tasks"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    title: str
    description: Optional[str] = None
    status: str = Field(default="backlog", index=True)
    priority: str = Field(default="medium")
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    due_date: Optional[int] = None  # epoch ms
    order: float = Field(default=0)
    archived: bool = Field(default=False)
    is_active: bool = Field(default=False)
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    # Optional only so rows imported before auth existed stay valid
    user_id: Optional[str] = Field(default=None, foreign_key="users.id", index=True)

    user: Optional["User"] = Relationship(back_populates="tasks")
