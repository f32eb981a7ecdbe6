"""
Sheet summary — counters shown above the grid.
"""

from collections import Counter, defaultdict
from typing import Optional, Sequence

from models.sheet import ItemCompletion, RowType, SheetSummary
from utils.text_utils import cell_text, parse_amount


def summarize(
    rows: Sequence,
    visible_rows: Optional[Sequence[int]] = None,
    displayed_rows: Optional[Sequence] = None,
) -> SheetSummary:
    """
    Build totals over data rows.

    Args:
        rows: Display rows (full projection, not collapsed)
        visible_rows: Indices left by the active filter, None when unfiltered
        displayed_rows: Rows the visible indices refer to (defaults to rows)

    Returns:
        SheetSummary with totals, filtered totals, per-item completion and
        order numbers that appear on more than one row
    """
    data_rows = [row for row in rows if row.row_type == RowType.DATA_ROW]

    total_amount = sum(parse_amount(row.values.get("amount")) for row in data_rows)

    if visible_rows is None:
        filtered = data_rows
    else:
        shown = rows if displayed_rows is None else displayed_rows
        filtered = [
            shown[index] for index in visible_rows
            if 0 <= index < len(shown) and shown[index].row_type == RowType.DATA_ROW
        ]

    order_numbers = Counter(
        cell_text(row.values.get("order_number")).strip()
        for row in data_rows
    )
    duplicates = sorted(
        number for number, count in order_numbers.items()
        if number and count > 1
    )

    totals: dict[int, int] = defaultdict(int)
    completed: dict[int, int] = defaultdict(int)
    for row in data_rows:
        totals[row.item_id] += 1
        if row.review_image_url:
            completed[row.item_id] += 1

    return SheetSummary(
        total_count=len(data_rows),
        total_amount=total_amount,
        filtered_count=len(filtered),
        filtered_amount=sum(parse_amount(row.values.get("amount")) for row in filtered),
        is_filtered=visible_rows is not None,
        duplicate_order_numbers=duplicates,
        item_completion=[
            ItemCompletion(item_id=item_id, total=totals[item_id], completed=completed[item_id])
            for item_id in sorted(totals)
        ],
    )
