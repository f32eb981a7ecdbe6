"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DatabaseError,

    # Slots / items
    SlotNotFoundError,
    ItemNotFoundError,
    GroupSplitError,

    # Sheet
    SheetNotLoadedError,
    CommitInProgressError,
    CommitFailedError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DatabaseError",

    # Slots / items
    "SlotNotFoundError",
    "ItemNotFoundError",
    "GroupSplitError",

    # Sheet
    "SheetNotLoadedError",
    "CommitInProgressError",
    "CommitFailedError",
]
