"""
stackit.errors — Error Taxonomy
=================================

Every service failure is one of six kinds.  Each carries a stable
machine-readable ``code`` and the HTTP status the API maps it to, so the
exception handler in :mod:`stackit.api.main` never needs a lookup table.
"""

from __future__ import annotations


class StackItError(Exception):
    """Base class for all domain failures."""

    code = "error"
    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


class UnauthenticatedError(StackItError):
    """No principal, or the credentials/token do not resolve to one."""
    code = "unauthenticated"
    status_code = 401


class ForbiddenError(StackItError):
    """Authenticated, but not allowed (role, ownership, ban, suspension)."""
    code = "forbidden"
    status_code = 403


class NotFoundError(StackItError):
    code = "not_found"
    status_code = 404


class ConflictError(StackItError):
    """An invariant would be violated (double accept, duplicate handle, …)."""
    code = "conflict"
    status_code = 409


class ValidationError(StackItError):
    code = "validation"
    status_code = 422


class UnavailableError(StackItError):
    """The storage backend could not be reached after bounded retries."""
    code = "unavailable"
    status_code = 503
