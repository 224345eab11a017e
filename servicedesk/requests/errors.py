from __future__ import annotations


class ServiceDeskError(RuntimeError):
    """Base error for request lifecycle issues."""

    category = "error"


class InvalidInputError(ServiceDeskError):
    """Raised when a required field is missing or malformed."""

    category = "validation"


class NotFoundError(ServiceDeskError):
    """Raised when a request or timeline entry could not be located."""

    category = "not_found"


class ForbiddenError(ServiceDeskError):
    """Raised when the access policy denies an action."""

    category = "forbidden"


class ConflictError(ServiceDeskError):
    """Raised when a write collides with a uniqueness constraint."""

    category = "conflict"


class UnavailableError(ServiceDeskError):
    """Raised when the backing store cannot serve the operation."""

    category = "unavailable"
