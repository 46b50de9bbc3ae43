"""Domain exceptions.

Services raise these at the first violated precondition. Each carries a
human-readable message and a stable code; translating the kind into an HTTP
status is left to the API layer (see ``taskboard.main``).
"""


class TaskboardError(Exception):
    """Base exception for domain failures."""

    def __init__(self, message: str, code: str = "TASKBOARD_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(TaskboardError):
    """Entity does not exist, or is soft-deleted and treated as absent."""

    def __init__(self, message: str):
        super().__init__(message=message, code="NOT_FOUND")


class ForbiddenError(TaskboardError):
    """Caller is authenticated but lacks the required capability."""

    def __init__(self, message: str):
        super().__init__(message=message, code="FORBIDDEN")


class ConflictError(TaskboardError):
    """Duplicate membership, duplicate unique key, or a concurrent write.

    Concurrent reaction toggles surface here as well; those are safe to retry.
    """

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message=message, code="CONFLICT")


class InvalidInputError(TaskboardError):
    """Malformed command, e.g. assigning a task to a non-member."""

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_INPUT")
