"""Typed errors raised by the core and translated at the HTTP boundary."""


class ChangeTrackError(Exception):
    """Base class for core errors."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ChangeTrackError):
    """Change request, application or validation record does not exist."""
    status_code = 404


class ForbiddenError(ChangeTrackError):
    """Viewer lacks read access, or caller does not own the application."""
    status_code = 403


class InvalidInputError(ChangeTrackError):
    """Malformed filter, unknown enum value or inconsistent time window."""
    status_code = 422


class ConflictError(ChangeTrackError):
    """Application already attached to the change request."""
    status_code = 409
