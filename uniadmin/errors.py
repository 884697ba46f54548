"""
Error taxonomy shared by the authorization and workflow core.

Core modules raise these and never import FastAPI; `uniadmin.main` maps them
to HTTP responses. Everything except `StorageUnavailable` is a client-facing,
non-retryable error.
"""

from __future__ import annotations


class UniAdminError(Exception):
    """Base class for client-facing errors."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(UniAdminError):
    status_code = 401
    code = "unauthenticated"


class Forbidden(UniAdminError):
    status_code = 403
    code = "forbidden"

    def __init__(self, message: str, *, missing_action: str | None = None) -> None:
        super().__init__(message)
        self.missing_action = missing_action


class NotFound(UniAdminError):
    status_code = 404
    code = "not_found"


class Conflict(UniAdminError):
    status_code = 409
    code = "conflict"


class BadRequest(UniAdminError):
    status_code = 400
    code = "bad_request"


class InvalidTransition(BadRequest):
    code = "invalid_transition"

    def __init__(self, entity_kind: str, entity_id: int, status: str, operation: str) -> None:
        super().__init__(f"Cannot {operation} {entity_kind} {entity_id} in status {status}")
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.status = status
        self.operation = operation


class ValidationFailed(BadRequest):
    code = "validation_failed"


class StorageUnavailable(Exception):
    """Retryable storage/connectivity failure. Never conflated with the taxonomy above."""

    status_code = 503
    code = "storage_unavailable"
