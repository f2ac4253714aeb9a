"""
Domain error taxonomy.

Every error a caller can recover from has a stable code. Services raise
these; a single exception handler renders them in the API error envelope.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class CoordinationError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "ERROR"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "status": self.status_code,
            }
        }


class NotFound(CoordinationError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Object not found"


class Forbidden(CoordinationError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "Caller has no standing over this resource"


class AlreadyExists(CoordinationError):
    code = "ALREADY_EXISTS"
    status_code = 409
    default_message = "A pending or active connection already exists for this pair"


class InvalidTransition(CoordinationError):
    code = "INVALID_TRANSITION"
    status_code = 409
    default_message = "Transition not allowed from the current status"

    def __init__(self, current: Optional[str] = None, target: Optional[str] = None):
        self.current = current
        self.target = target
        message = None
        if current and target:
            message = f"Cannot move connection from '{current}' to '{target}'"
        super().__init__(message)


class Conflict(CoordinationError):
    code = "CONFLICT"
    status_code = 409
    default_message = "Concurrent update detected, retry the request"


class InvalidStep(CoordinationError):
    code = "INVALID_STEP"
    status_code = 422
    default_message = "Step is not part of this onboarding sequence"


class Unauthenticated(CoordinationError):
    code = "UNAUTHENTICATED"
    status_code = 401
    default_message = "Authentication required"


async def coordination_error_handler(request: Request, exc: CoordinationError) -> JSONResponse:
    """Render a domain error in the standard error envelope."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())
