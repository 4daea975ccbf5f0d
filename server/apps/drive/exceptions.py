"""Exceptions for drive app.

``DomainError`` subclasses carry the HTTP status the outer layer
reports for them, see ``server.apps.drive.middleware``.
"""

from typing import ClassVar


class DomainError(Exception):
    """Base class for expected business failures."""

    status_code: ClassVar[int] = 500
    default_message: ClassVar[str] = 'Internal server error'

    def __init__(self, message: str | None = None) -> None:
        """Initialize DomainError.

        Args:
            message: Human readable reason, safe to show to the client.
        """
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(DomainError):
    """Raised when an entity is absent or not owned by the actor."""

    status_code = 404
    default_message = 'Not found'


class ForbiddenError(DomainError):
    """Raised when the actor is not allowed to perform the operation."""

    status_code = 403
    default_message = 'Forbidden'


class ConflictError(DomainError):
    """Raised when the operation clashes with existing state."""

    status_code = 409
    default_message = 'Conflict'


class InvalidInputError(DomainError):
    """Raised when arguments fail validation."""

    status_code = 400
    default_message = 'Invalid input'


class CyclicMoveError(ConflictError):
    """Raised when a folder would be moved into itself or a descendant."""

    default_message = 'Cannot move folder into itself or its children'
