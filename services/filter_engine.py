"""
Filter engine — per-column conditions over data rows.

Conditions are ANDed. Structural rows (separators, group headers, link
banners) are hidden whenever any condition is active. A condition on a column
that data rows do not map, or on an out-of-range column, matches nothing.
"""

from typing import Any, Optional, Sequence

from models.sheet import FilterCondition, FilterOperator, RowType
from services.column_mapper import field_for
from utils.text_utils import cell_text, is_blank


def _cell(row, column_index: int) -> tuple[bool, Any]:
    """(mapped, value) of a data-row cell."""
    field_name = field_for(RowType.DATA_ROW, column_index)
    if field_name is None:
        return False, None
    return True, row.values.get(field_name)


def matches(row, condition: FilterCondition) -> bool:
    """True if a data row satisfies one condition."""
    mapped, value = _cell(row, condition.column_index)
    if not mapped:
        return False

    operator = condition.operator
    text = cell_text(value)

    if operator == FilterOperator.EQUALS:
        return text == cell_text(condition.value)
    if operator == FilterOperator.CONTAINS:
        return cell_text(condition.value) in text
    if operator == FilterOperator.NOT_CONTAINS:
        return cell_text(condition.value) not in text
    if operator == FilterOperator.IS_EMPTY:
        return is_blank(value)
    if operator == FilterOperator.IS_NOT_EMPTY:
        return not is_blank(value)
    if operator == FilterOperator.IN_SET:
        return text in condition.values
    return False


def apply_filters(
    rows: Sequence,
    conditions: Sequence[FilterCondition],
) -> Optional[list[int]]:
    """
    Visible row indices under a condition set.

    Args:
        rows: Display rows
        conditions: Active conditions

    Returns:
        None when no condition is active (show everything), otherwise the
        indices of the data rows satisfying every condition (possibly empty)
    """
    if not conditions:
        return None

    return [
        index for index, row in enumerate(rows)
        if row.row_type == RowType.DATA_ROW
        and all(matches(row, condition) for condition in conditions)
    ]


def distinct_values(rows: Sequence, column_index: int) -> list[str]:
    """
    Sorted distinct texts of a data-row column, for a by-value picker.

    Empty cells are listed as "".
    """
    mapped = field_for(RowType.DATA_ROW, column_index) is not None
    if not mapped:
        return []
    values = {
        cell_text(_cell(row, column_index)[1])
        for row in rows
        if row.row_type == RowType.DATA_ROW
    }
    return sorted(values)
