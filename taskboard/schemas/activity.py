from pydantic import BaseModel
from typing import Any, Optional


class ActivityEntry(BaseModel):
    """History entry with its old/new values already decoded from JSON."""
    id: int
    task_id: str
    field: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    user_id: Optional[str] = None
    created_at: int


class RecentActivityEntry(ActivityEntry):
    task_title: str
