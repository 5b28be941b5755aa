"""
Domain errors raised by the service layer.

Each error carries the HTTP status the API renders it with, so services stay
free of FastAPI imports and routes do not need per-error translation.
"""


class LifecycleError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LifecycleError):
    """Malformed or missing required input."""

    status_code = 400


class NotFoundError(LifecycleError):
    """Referenced entity does not exist."""

    status_code = 404


class ForbiddenError(LifecycleError):
    """Caller is authenticated but not entitled to the operation."""

    status_code = 403


class ConflictError(LifecycleError):
    """Domain rule violation: duplicate, self-accept or invalid transition."""

    status_code = 409


class UnexpectedError(LifecycleError):
    """Store or infrastructure failure."""

    status_code = 500
