from .task import Task, TRACKED_FIELDS, VALID_PRIORITIES, VALID_STATUSES
from .user import User
from .activity import ActivityHistory

# Export all models for easy importing
__all__ = [
    "Task",
    "User",
    "ActivityHistory",
    "TRACKED_FIELDS",
    "VALID_STATUSES",
    "VALID_PRIORITIES",
]
