"""Error taxonomy shared by the store, the discovery service and the API.

Every error carries the HTTP status it maps to; the FastAPI exception handler
in :mod:`locallabor.api.main` renders ``{"detail": message}``.
"""
from __future__ import annotations


class LaborError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LaborError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(LaborError):
    status_code = 401
    default_message = "Not authorized"


class AuthorizationError(LaborError):
    # Never says who actually owns the resource.
    status_code = 403
    default_message = "Forbidden: you do not have permission to access this resource."


class NotFoundError(LaborError):
    status_code = 404
    default_message = "Not found"


class ConflictError(LaborError):
    status_code = 400
    default_message = "Conflict"


class UpstreamDependencyError(LaborError):
    status_code = 502
    default_message = "Error processing job location. Please try again later or verify the city."


class StoreError(LaborError):
    status_code = 500
    default_message = "Unexpected storage error"


__all__ = [
    "LaborError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "UpstreamDependencyError",
    "StoreError",
]
