from sqlmodel import SQLModel, Field
from typing import Optional

from ..timeutil import now_ms


class ActivityHistory(SQLModel, table=True):
    """One change-log row for a tracked task field.

    Rows are append-only; ``old_value``/``new_value`` hold JSON text written by
    ``taskboard.activity.encode_value``.
    """
    __tablename__ = "activity_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: str = Field(index=True)
    field: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    user_id: Optional[str] = Field(default=None, index=True)
    created_at: int = Field(default_factory=now_ms, index=True)
