"""
Custom exception classes for the application.

All errors carry a stable code, an HTTP status and a details dict so routes
can return them unchanged.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "SLOT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# SLOT / ITEM ERRORS
# ===================

class SlotNotFoundError(NotFoundError):
    """Slot not found."""

    def __init__(self, slot_id: Any):
        super().__init__(
            resource="Slot",
            identifier=str(slot_id),
            code="SLOT_NOT_FOUND"
        )


class ItemNotFoundError(NotFoundError):
    """Campaign item not found."""

    def __init__(self, item_id: Any):
        super().__init__(
            resource="Item",
            identifier=str(item_id),
            code="ITEM_NOT_FOUND"
        )


class GroupSplitError(ValidationError):
    """Day group cannot be split after the given slot."""

    def __init__(self, slot_id: Any, day_group: Any):
        super().__init__(
            code="GROUP_SPLIT_NOTHING_TO_MOVE",
            message="Cannot close the day on the last row of a group",
            details={"slot_id": slot_id, "day_group": day_group}
        )


# ===================
# SHEET ERRORS
# ===================

class SheetNotLoadedError(AppError):
    """Sheet operation attempted before the first load."""

    def __init__(self, campaign_id: Any):
        super().__init__(
            code="SHEET_NOT_LOADED",
            message="Sheet has not been loaded yet",
            status_code=409,
            details={"campaign_id": campaign_id}
        )


class CommitInProgressError(ConflictError):
    """A commit for this sheet is already running."""

    def __init__(self, campaign_id: Any):
        super().__init__(
            code="COMMIT_IN_PROGRESS",
            message="A save is already in progress for this sheet",
            details={"campaign_id": campaign_id}
        )


class CommitFailedError(AppError):
    """
    One or both halves of a commit were rejected by the backend.

    Patches that failed stay pending so the user can retry.
    """

    def __init__(
        self,
        failed_slot_ids: list,
        failed_item_ids: list,
        errors: list[str]
    ):
        super().__init__(
            code="COMMIT_FAILED",
            message=f"Save failed for {len(failed_slot_ids)} slots and {len(failed_item_ids)} items",
            status_code=502,
            details={
                "failed_slot_ids": failed_slot_ids,
                "failed_item_ids": failed_item_ids,
                "errors": errors,
            }
        )
