"""
Sheet view schemas: display rows, filters, preferences and commit results.

Display rows are derived from slots and never persisted. The four row kinds
form a tagged union on ``row_type``.
"""

from typing import Any, Annotated, Literal, Optional, Union
from enum import Enum
from pydantic import Field

from models.base import BaseSchema


class RowType(str, Enum):
    """Kind of a display row."""
    ITEM_SEPARATOR = "item_separator"
    GROUP_HEADER = "group_header"
    LINK_BANNER = "link_banner"
    DATA_ROW = "data_row"


STRUCTURAL_ROW_TYPES = frozenset({
    RowType.ITEM_SEPARATOR,
    RowType.GROUP_HEADER,
    RowType.LINK_BANNER,
})


class EntityRefs(BaseSchema):
    """Entity IDs a display row stands for."""

    item_id: Optional[int] = None
    day_group: Optional[int] = None
    slot_id: Optional[int] = None
    buyer_id: Optional[int] = None


# ===================
# DISPLAY ROWS
# ===================

class ItemSeparator(BaseSchema):
    """Visual break between two items. References nothing."""

    row_type: Literal[RowType.ITEM_SEPARATOR] = RowType.ITEM_SEPARATOR

    @property
    def refs(self) -> EntityRefs:
        return EntityRefs()


class GroupHeader(BaseSchema):
    """
    One per (item, day group).

    ``values`` holds the group's override fields (taken from the first slot of
    the group) and the item's catalogue fields.
    """

    row_type: Literal[RowType.GROUP_HEADER] = RowType.GROUP_HEADER
    item_id: int
    day_group: int
    values: dict[str, Any] = Field(default_factory=dict)
    total_slots: int = 0
    completed_slots: int = 0

    @property
    def refs(self) -> EntityRefs:
        return EntityRefs(item_id=self.item_id, day_group=self.day_group)

    @property
    def is_all_completed(self) -> bool:
        return self.total_slots > 0 and self.total_slots == self.completed_slots


class LinkBanner(BaseSchema):
    """Upload link for a group. Read-only except for copying the link."""

    row_type: Literal[RowType.LINK_BANNER] = RowType.LINK_BANNER
    item_id: int
    day_group: int
    upload_token: Optional[str] = None
    upload_url: Optional[str] = None

    @property
    def refs(self) -> EntityRefs:
        return EntityRefs(item_id=self.item_id, day_group=self.day_group)


class DataRow(BaseSchema):
    """One slot and its buyer."""

    row_type: Literal[RowType.DATA_ROW] = RowType.DATA_ROW
    slot_id: int
    buyer_id: Optional[int] = None
    item_id: int
    day_group: int
    sequence: int = Field(..., description="1-based position inside the group")
    values: dict[str, Any] = Field(default_factory=dict)
    review_image_url: Optional[str] = None
    has_buyer_data: bool = False

    @property
    def refs(self) -> EntityRefs:
        return EntityRefs(
            item_id=self.item_id,
            day_group=self.day_group,
            slot_id=self.slot_id,
            buyer_id=self.buyer_id,
        )


DisplayRow = Annotated[
    Union[ItemSeparator, GroupHeader, LinkBanner, DataRow],
    Field(discriminator="row_type"),
]


# ===================
# FILTERS
# ===================

class FilterOperator(str, Enum):
    """Per-column filter predicates."""
    EQUALS = "eq"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IS_EMPTY = "empty"
    IS_NOT_EMPTY = "not_empty"
    IN_SET = "by_value"


class FilterCondition(BaseSchema):
    """
    A condition on one grid column.

    ``value`` is used by eq/contains/not_contains, ``values`` by by_value.
    """

    column_index: int = Field(..., description="Grid column the condition reads")
    operator: FilterOperator = Field(..., description="Predicate to apply")
    value: Optional[Any] = Field(None, description="Operand for eq/contains")
    values: list[str] = Field(default_factory=list, description="Allowed values for by_value")


class FilterRequest(BaseSchema):
    """Replace the active filter conditions."""

    conditions: list[FilterCondition] = Field(default_factory=list)


# ===================
# VIEW PREFERENCES
# ===================

class ViewPreferences(BaseSchema):
    """
    Per-user grid preferences, persisted by the dashboard shell.

    Collapsed items show only their group headers.
    """

    column_widths: list[int] = Field(default_factory=list)
    collapsed_item_ids: set[int] = Field(default_factory=set)

    def width_for(self, column_index: int, default: int) -> int:
        if 0 <= column_index < len(self.column_widths) and self.column_widths[column_index] > 0:
            return self.column_widths[column_index]
        return default


# ===================
# EDITS / COMMIT
# ===================

class CellEdit(BaseSchema):
    """A single cell change coming from the grid."""

    row_index: int = Field(..., ge=0)
    column_index: int = Field(..., ge=0)
    value: Optional[Any] = None


class EditBatch(BaseSchema):
    """Cell changes fired by one grid event (paste, drag-fill, typing)."""

    edits: list[CellEdit] = Field(..., min_length=1)


class EditResponse(BaseSchema):
    """Result of recording a batch of edits."""

    recorded: int = Field(..., description="Edits that changed the pending set")
    ignored: int = Field(..., description="No-ops and edits on non-editable cells")
    change_count: int = Field(..., description="Pending slot + item patches")


class CommitResult(BaseSchema):
    """Outcome of one commit."""

    success: bool
    committed_slot_ids: list[int] = Field(default_factory=list)
    committed_item_ids: list[int] = Field(default_factory=list)
    failed_slot_ids: list[int] = Field(default_factory=list)
    failed_item_ids: list[int] = Field(default_factory=list)
    skipped_slot_ids: list[int] = Field(
        default_factory=list,
        description="Slots deleted elsewhere; their patches were dropped"
    )
    skipped_item_ids: list[int] = Field(
        default_factory=list,
        description="Items deleted elsewhere; their patches were dropped"
    )
    errors: list[str] = Field(default_factory=list)
    remaining_changes: int = 0


# ===================
# STRUCTURAL EDITS
# ===================

class SlotDeleteRequest(BaseSchema):
    """Delete the selected data rows."""

    slot_ids: list[int] = Field(..., min_length=1)


class GroupSplitResult(BaseSchema):
    """Result of closing a day after a given slot."""

    original_day_group: int
    new_day_group: int
    moved_count: int
    split_after_slot_number: Optional[int] = None


# ===================
# SUMMARY / VIEW
# ===================

class ItemCompletion(BaseSchema):
    """Review completion for one item."""

    item_id: int
    total: int
    completed: int

    @property
    def is_all_completed(self) -> bool:
        return self.total > 0 and self.total == self.completed


class SheetSummary(BaseSchema):
    """Counters shown above the grid."""

    total_count: int = 0
    total_amount: int = 0
    filtered_count: int = 0
    filtered_amount: int = 0
    is_filtered: bool = False
    duplicate_order_numbers: list[str] = Field(default_factory=list)
    item_completion: list[ItemCompletion] = Field(default_factory=list)


class SheetView(BaseSchema):
    """Everything the grid needs to render one campaign sheet."""

    campaign_id: int
    rows: list[DisplayRow]
    visible_rows: Optional[list[int]] = Field(
        None, description="Visible row indices, None when no filter is active"
    )
    change_count: int = 0
    commit_in_progress: bool = False
    summary: SheetSummary
    preferences: ViewPreferences
