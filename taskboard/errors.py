"""Domain errors raised by the task repository and the auth layers.

Each error carries the HTTP status it maps to, so both the session API and the
token API can translate failures without string matching.
"""


class TaskboardError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TaskboardError):
    """Bad input shape, enum value or empty required field."""
    status_code = 400


class InvalidEnumError(ValidationError):
    def __init__(self, kind: str, value, allowed):
        super().__init__(
            f'Invalid {kind}: "{value}". Must be one of: {", ".join(allowed)}'
        )
        self.kind = kind
        self.value = value


class NotFoundError(TaskboardError):
    status_code = 404


class ForbiddenError(TaskboardError):
    status_code = 403


class ConflictError(TaskboardError):
    """Valid operation requested against a task in the wrong state."""
    status_code = 409


class AuthError(TaskboardError):
    status_code = 401


class ConfigurationError(TaskboardError):
    """Required server configuration is missing."""
    status_code = 500
