"""
Domain error taxonomy shared by all bounded contexts.

Why:
    Use cases raise these errors; the web adapter maps them to HTTP responses
    in one place (see `backend.web.main._register_error_handlers`). Each error
    carries a stable machine-readable `code` and the HTTP status it maps to.

Design:
    The classes also derive from the builtin exceptions the rest of the code
    base already handles (`ValueError`, `PermissionError`, `LookupError`) so
    callers that only care about the broad category can keep catching those.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for errors that are safe to surface to API clients."""

    status_code = 500
    default_code = "error"

    def __init__(self, code: str | None = None, detail: str | None = None) -> None:
        self.code = code or self.default_code
        self.detail = detail
        super().__init__(detail or self.code)

    def to_payload(self) -> dict:
        body = {"error": self.code}
        if self.detail:
            body["detail"] = self.detail
        return body


class ValidationError(DomainError, ValueError):
    """Malformed or missing input (400)."""

    status_code = 400
    default_code = "bad_request"


class ConflictError(DomainError):
    """Uniqueness violation (409)."""

    status_code = 409
    default_code = "conflict"


class DuplicateSubmission(ConflictError):
    """A learner already submitted this assignment."""

    default_code = "duplicate_submission"


class AuthError(DomainError):
    """Authentication failed, e.g. invalid credentials (401)."""

    status_code = 401
    default_code = "invalid_credentials"


class Unauthenticated(AuthError):
    """No valid session is bound to the request (401)."""

    default_code = "unauthenticated"


class Forbidden(DomainError, PermissionError):
    """Authenticated, but not allowed (403).

    The `code` distinguishes the cause: `no_role_assigned` vs. `role_mismatch`.
    """

    status_code = 403
    default_code = "forbidden"


class NotFound(DomainError, LookupError):
    status_code = 404
    default_code = "not_found"


class InternalError(DomainError):
    """Unexpected store/backing-service failure (500). Never carries internals."""

    status_code = 500
    default_code = "internal_error"


__all__ = [
    "DomainError",
    "ValidationError",
    "ConflictError",
    "DuplicateSubmission",
    "AuthError",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "InternalError",
]
