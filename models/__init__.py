"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, RecordSchema
from models.slot import (
    CellValue,
    SlotStatus,
    ReviewImage,
    Buyer,
    Slot,
    Item,
)
from models.sheet import (
    RowType,
    EntityRefs,
    ItemSeparator,
    GroupHeader,
    LinkBanner,
    DataRow,
    DisplayRow,
    FilterOperator,
    FilterCondition,
    FilterRequest,
    ViewPreferences,
    CellEdit,
    EditBatch,
    EditResponse,
    CommitResult,
    SlotDeleteRequest,
    GroupSplitResult,
    ItemCompletion,
    SheetSummary,
    SheetView,
)

__all__ = [
    "BaseSchema",
    "RecordSchema",
    "CellValue",
    "SlotStatus",
    "ReviewImage",
    "Buyer",
    "Slot",
    "Item",
    "RowType",
    "EntityRefs",
    "ItemSeparator",
    "GroupHeader",
    "LinkBanner",
    "DataRow",
    "DisplayRow",
    "FilterOperator",
    "FilterCondition",
    "FilterRequest",
    "ViewPreferences",
    "CellEdit",
    "EditBatch",
    "EditResponse",
    "CommitResult",
    "SlotDeleteRequest",
    "GroupSplitResult",
    "ItemCompletion",
    "SheetSummary",
    "SheetView",
]
