"""
Error taxonomy for the listings API

Each error carries the HTTP status it maps to so the exception handlers in
app.main can shape the uniform envelope ``{success, message, errors?}``.
"""
from typing import List, Optional


class LandListingsError(Exception):
    """Base exception for the listings backend."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        self.message = message or self.default_message
        self.errors = list(errors) if errors else []
        super().__init__(self.message)

    def to_envelope(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(LandListingsError):
    """One or more fields violate listing rules."""

    status_code = 400
    default_message = "Validation failed"


class NotFoundError(LandListingsError):
    """Listing or one of its images does not exist."""

    status_code = 404
    default_message = "Listing not found"


class UploadError(LandListingsError):
    """Image upload rejected or failed."""

    default_message = "Failed to upload any images"

    # reason -> HTTP status
    STATUS_BY_REASON = {
        "format": 400,
        "remote": 400,
        "empty": 400,
        "timeout": 408,
        "size": 413,
    }

    def __init__(self, message: Optional[str] = None, reason: str = "remote",
                 errors: Optional[List[str]] = None):
        super().__init__(message, errors)
        self.reason = reason
        self.status_code = self.STATUS_BY_REASON.get(reason, 400)


class StoreError(LandListingsError):
    """Persistence failure (duplicate key, lost connection)."""

    default_message = "Database error"

    def __init__(self, message: Optional[str] = None, conflict: bool = False):
        super().__init__(message)
        self.status_code = 409 if conflict else 500


class InternalError(LandListingsError):
    """Anything unanticipated."""
    pass
