"""
Row projector — slots → ordered display rows.

Pure functions. Given the same slots and items the output is identical.

Row order is (item_id, day_group, load order). Each group is introduced by a
GroupHeader + LinkBanner pair, and every item after the first is introduced
by an ItemSeparator:

    GroupHeader(10, 1)  LinkBanner(10, 1)  DataRow  DataRow
    GroupHeader(10, 2)  LinkBanner(10, 2)  DataRow
    ItemSeparator
    GroupHeader(11, 1)  LinkBanner(11, 1)  DataRow
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence
import structlog

from models.slot import Item, Slot
from models.sheet import (
    DataRow,
    GroupHeader,
    ItemSeparator,
    LinkBanner,
    RowType,
)
from services.column_mapper import ITEM_FIELDS, OVERRIDE_FIELDS
from utils.text_utils import is_blank

logger = structlog.get_logger(__name__)


@dataclass
class RowIndex:
    """Lookups from entity IDs back to row positions."""
    slot_rows: dict[int, int] = field(default_factory=dict)
    header_rows: dict[tuple[int, int], int] = field(default_factory=dict)
    banner_rows: dict[tuple[int, int], int] = field(default_factory=dict)

    def row_of_slot(self, slot_id: int) -> Optional[int]:
        return self.slot_rows.get(slot_id)


def display_status(slot: Slot) -> str:
    """
    Status shown in a data row.

    completed once the buyer has a review image, otherwise the stored
    status, otherwise "-".
    """
    buyer = slot.buyer
    if buyer is not None and buyer.review_image is not None and buyer.review_image.s3_url:
        return "completed"
    if slot.status:
        return str(slot.status)
    return "-"


def _has_review(slot: Slot) -> bool:
    image = slot.buyer.review_image if slot.buyer is not None else None
    return image is not None and bool(image.s3_url)


def group_value(slot: Slot, item: Item, field_name: str) -> Any:
    """Override field of a group: the slot's value, else the item's."""
    value = getattr(slot, field_name, None)
    if is_blank(value):
        return getattr(item, field_name, None)
    return value


def _header_values(first_slot: Slot, item: Item) -> dict[str, Any]:
    values = {name: group_value(first_slot, item, name) for name in OVERRIDE_FIELDS}
    values.update({name: getattr(item, name, None) for name in ITEM_FIELDS})
    return values


def _data_values(slot: Slot, item: Item, sequence: int) -> dict[str, Any]:
    buyer = slot.buyer
    image = buyer.review_image if buyer is not None else None

    def buyer_value(name: str) -> Any:
        return getattr(buyer, name, None) if buyer is not None else None

    return {
        "date": slot.date,
        "sequence": sequence,
        "product_name": group_value(slot, item, "product_name"),
        "expected_buyer": slot.expected_buyer,
        "contact": buyer_value("contact"),
        "order_number": buyer_value("order_number"),
        "buyer_name": buyer_value("buyer_name"),
        "recipient_name": buyer_value("recipient_name"),
        "user_id": buyer_value("user_id"),
        "address": buyer_value("address"),
        "account_info": buyer_value("account_info"),
        "amount": buyer_value("amount"),
        "review_image": image.s3_url if image is not None else None,
        "status": display_status(slot),
        "review_cost": slot.review_cost,
    }


def project(
    slots: Sequence[Slot],
    items: Mapping[int, Item],
    upload_url_for: Optional[Callable[[Optional[str]], Optional[str]]] = None,
) -> list:
    """
    Turn a flat slot list into display rows.

    Slots whose item is not in ``items`` are skipped and logged; one bad
    record must not blank the sheet. Items with no slots produce no rows.

    Args:
        slots: Slots in load order
        items: Items keyed by ID
        upload_url_for: Optional builder for a banner's copyable link

    Returns:
        List of ItemSeparator | GroupHeader | LinkBanner | DataRow
    """
    valid: list[tuple[int, Slot]] = []
    for position, slot in enumerate(slots):
        if slot.item_id not in items:
            logger.warning(
                "slot_skipped_unknown_item",
                slot_id=slot.id,
                item_id=slot.item_id,
            )
            continue
        valid.append((position, slot))

    ordered = [
        slot for _, slot in sorted(
            valid, key=lambda pair: (pair[1].item_id, pair[1].day_group, pair[0])
        )
    ]

    groups: dict[tuple[int, int], list[Slot]] = defaultdict(list)
    for slot in ordered:
        groups[slot.group_key].append(slot)

    rows: list = []
    current_item: Optional[int] = None
    current_group: Optional[tuple[int, int]] = None
    sequence = 0

    for slot in ordered:
        if slot.item_id != current_item:
            if current_item is not None:
                rows.append(ItemSeparator())
            current_item = slot.item_id

        if slot.group_key != current_group:
            current_group = slot.group_key
            sequence = 0
            members = groups[current_group]
            token = members[0].upload_link_token

            rows.append(GroupHeader(
                item_id=slot.item_id,
                day_group=slot.day_group,
                values=_header_values(members[0], items[slot.item_id]),
                total_slots=len(members),
                completed_slots=sum(1 for member in members if _has_review(member)),
            ))
            rows.append(LinkBanner(
                item_id=slot.item_id,
                day_group=slot.day_group,
                upload_token=token,
                upload_url=upload_url_for(token) if upload_url_for else None,
            ))

        sequence += 1
        buyer = slot.buyer
        image = buyer.review_image if buyer is not None else None
        rows.append(DataRow(
            slot_id=slot.id,
            buyer_id=buyer.id if buyer is not None else None,
            item_id=slot.item_id,
            day_group=slot.day_group,
            sequence=sequence,
            values=_data_values(slot, items[slot.item_id], sequence),
            review_image_url=image.s3_url if image is not None else None,
            has_buyer_data=buyer.has_buyer_data if buyer is not None else False,
        ))

    return rows


def index_rows(rows: Sequence) -> RowIndex:
    """Build slot → row and group → header/banner lookups."""
    index = RowIndex()
    for position, row in enumerate(rows):
        if row.row_type == RowType.DATA_ROW:
            index.slot_rows[row.slot_id] = position
        elif row.row_type == RowType.GROUP_HEADER:
            index.header_rows[(row.item_id, row.day_group)] = position
        elif row.row_type == RowType.LINK_BANNER:
            index.banner_rows[(row.item_id, row.day_group)] = position
    return index


def collapse(rows: Sequence, collapsed_item_ids: Iterable[int]) -> list:
    """
    Hide the banners and data rows of collapsed items.

    Group headers and separators stay so a collapsed item still shows one
    line per day group.
    """
    collapsed = set(collapsed_item_ids)
    if not collapsed:
        return list(rows)

    return [
        row for row in rows
        if not (
            row.row_type in (RowType.LINK_BANNER, RowType.DATA_ROW)
            and row.item_id in collapsed
        )
    ]
