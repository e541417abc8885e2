"""
Error taxonomy raised by the service layer and translated to HTTP in ``main``.
"""
from __future__ import annotations


class DomainError(Exception):
    """Base class for expected failures; ``message`` is shown to the client."""

    code = "Unexpected"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    code = "NotFound"
    status_code = 404


class ForbiddenError(DomainError):
    code = "Forbidden"
    status_code = 403


class ValidationFailedError(DomainError):
    code = "ValidationFailed"
    status_code = 400


class ConflictError(DomainError):
    code = "Conflict"
    status_code = 409


# Raised by repositories; services map them onto the taxonomy above.
class DuplicateKeyError(Exception):
    """A unique field (username, email) collided with an existing record."""

    def __init__(self, field: str) -> None:
        super().__init__(f"duplicate value for unique field '{field}'")
        self.field = field


class StaleVersionError(Exception):
    """A task save was attempted against a version that is no longer current."""

    def __init__(self, task_id: str, expected: int, actual: int) -> None:
        super().__init__(f"task {task_id} is at version {actual}, not {expected}")
        self.task_id = task_id
        self.expected = expected
        self.actual = actual
