"""
Column mapper — grid column ↔ field name, per row type.

All row types share one fixed set of 16 columns. A column means a different
field depending on the row it sits in (column 5 is the unit price on a group
header but the buyer's contact number on a data row). The mapping depends
only on (row type, column index), never on row content.

Field ownership decides where an edit is stored:
    ITEM_FIELDS      → the item (catalogue-level, shared by every group)
    OVERRIDE_FIELDS  → every slot of the group (per-group overrides)
    SLOT_FIELDS      → the slot of a data row
    BUYER_FIELDS     → the buyer embedded in the slot of a data row
"""

from typing import Any, Optional

from models.sheet import RowType
from utils.text_utils import parse_digits

COLUMN_COUNT = 16

# ===================
# FIELD OWNERSHIP
# ===================

ITEM_FIELDS = frozenset({
    "platform",
    "shipping_type",
    "total_purchase_count",
    "daily_purchase_count",
    "product_url",
    "courier_service_yn",
    "sale_price_per_unit",
    "courier_price_per_unit",
})

OVERRIDE_FIELDS = frozenset({
    "date",
    "product_name",
    "purchase_option",
    "keyword",
    "product_price",
    "notes",
})

SLOT_FIELDS = frozenset({
    "date",
    "status",
    "expected_buyer",
    "review_cost",
})

BUYER_FIELDS = frozenset({
    "order_number",
    "buyer_name",
    "recipient_name",
    "user_id",
    "contact",
    "address",
    "account_info",
    "amount",
    "tracking_number",
    "courier_company",
    "deposit_name",
    "payment_confirmed",
    "shipping_delayed",
})

# Edited values are reduced to their digits (see normalize_value)
NUMERIC_FIELDS = frozenset({
    "amount",
    "review_cost",
    "product_price",
    "total_purchase_count",
    "sale_price_per_unit",
    "courier_price_per_unit",
})

# Shown in data rows but never written from the grid
READ_ONLY_FIELDS = frozenset({
    "sequence",
    "review_image",
})

# ===================
# COLUMN LAYOUT
# ===================

_GROUP_HEADER_COLUMNS: tuple[Optional[str], ...] = (
    None,                       # 0  collapse toggle
    "date",                     # 1
    "platform",                 # 2
    "product_name",             # 3
    "purchase_option",          # 4
    "product_price",            # 5
    "keyword",                  # 6
    "shipping_type",            # 7
    "total_purchase_count",     # 8
    "daily_purchase_count",     # 9
    "courier_service_yn",       # 10
    "product_url",              # 11
    "notes",                    # 12
    "sale_price_per_unit",      # 13
    "courier_price_per_unit",   # 14
    None,                       # 15
)

_DATA_ROW_COLUMNS: tuple[Optional[str], ...] = (
    None,                       # 0
    "date",                     # 1
    "sequence",                 # 2
    "product_name",             # 3  read-only copy of the group value
    "expected_buyer",           # 4
    "contact",                  # 5
    "order_number",             # 6
    "buyer_name",               # 7
    "recipient_name",           # 8
    "user_id",                  # 9
    "address",                  # 10
    "account_info",             # 11
    "amount",                   # 12
    "review_image",             # 13
    "status",                   # 14
    "review_cost",              # 15
)

_EMPTY_COLUMNS: tuple[Optional[str], ...] = (None,) * COLUMN_COUNT

_LAYOUT: dict[RowType, tuple[Optional[str], ...]] = {
    RowType.ITEM_SEPARATOR: _EMPTY_COLUMNS,
    RowType.GROUP_HEADER: _GROUP_HEADER_COLUMNS,
    RowType.LINK_BANNER: _EMPTY_COLUMNS,
    RowType.DATA_ROW: _DATA_ROW_COLUMNS,
}

# Data-row columns that display group values and cannot be edited there
_DATA_ROW_READ_ONLY = READ_ONLY_FIELDS | {"product_name"}

# Column header labels (grid and Excel export)
COLUMN_LABELS: dict[RowType, tuple[str, ...]] = {
    RowType.GROUP_HEADER: (
        "", "Date", "Platform", "Product", "Option", "Price", "Keyword",
        "Shipping", "Total", "Daily", "Courier", "URL", "Notes",
        "Sale/unit", "Courier/unit", "",
    ),
    RowType.DATA_ROW: (
        "", "Date", "No.", "Product", "Expected buyer", "Contact", "Order No.",
        "Buyer", "Recipient", "Account ID", "Address", "Bank account",
        "Amount", "Review", "Status", "Review fee",
    ),
}

DEFAULT_COLUMN_WIDTHS: tuple[int, ...] = (
    20, 60, 70, 120, 80, 100, 110, 70, 70, 100, 150, 120, 70, 55, 60, 60,
)


def field_for(row_type: RowType, column_index: int) -> Optional[str]:
    """
    Field shown in a column for a row type.

    Args:
        row_type: Kind of the row
        column_index: Grid column (0-based)

    Returns:
        Field name, or None for structural rows and unmapped or out-of-range columns
    """
    if not 0 <= column_index < COLUMN_COUNT:
        return None
    return _LAYOUT[RowType(row_type)][column_index]


def column_for(row_type: RowType, field_name: str) -> Optional[int]:
    """
    Inverse of field_for.

    Returns:
        Column index, or None if the field is not shown on that row type
    """
    if not field_name:
        return None
    try:
        return _LAYOUT[RowType(row_type)].index(field_name)
    except ValueError:
        return None


def is_editable(row_type: RowType, column_index: int) -> bool:
    """True if a cell accepts edits from the grid."""
    field_name = field_for(row_type, column_index)
    if field_name is None:
        return False
    if RowType(row_type) == RowType.DATA_ROW:
        return field_name not in _DATA_ROW_READ_ONLY
    return True


def owner_of(row_type: RowType, field_name: str) -> Optional[str]:
    """
    Entity an edit of this field on this row type is stored against.

    Returns:
        "item", "group", "slot", "buyer", or None if the field is not editable there
    """
    row_type = RowType(row_type)

    if row_type == RowType.GROUP_HEADER:
        if field_name in ITEM_FIELDS:
            return "item"
        if field_name in OVERRIDE_FIELDS:
            return "group"
        return None

    if row_type == RowType.DATA_ROW:
        if field_name in _DATA_ROW_READ_ONLY:
            return None
        if field_name in BUYER_FIELDS:
            return "buyer"
        if field_name in SLOT_FIELDS:
            return "slot"
        return None

    return None


def normalize_value(field_name: str, value: Any) -> Any:
    """
    Value an edit of this field is tracked and saved as.

    Numeric fields keep their digits only ("15,000원" → 15000, "" → None).
    Every other field is returned unchanged.
    """
    if field_name in NUMERIC_FIELDS:
        return parse_digits(value)
    return value
