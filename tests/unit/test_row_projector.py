"""
Unit tests for the row projector.

Run: pytest tests/unit/test_row_projector.py -v
"""

import random

import pytest

from models.sheet import RowType
from services.row_projector import collapse, display_status, index_rows, project
from tests.factories import BuyerFactory, ItemFactory, SlotFactory


def _kinds(rows) -> list[str]:
    return [RowType(row.row_type).value for row in rows]


def _items(*item_ids):
    return {item_id: ItemFactory.build(id=item_id) for item_id in item_ids}


class TestProjectLayout:
    """Tests for project() row layout"""

    def test_two_items_layout(self, two_group_campaign):
        """Should frame each group with header + banner and separate items."""
        items, slots = two_group_campaign

        rows = project(slots, {item.id: item for item in items})

        assert _kinds(rows) == [
            "group_header", "link_banner", "data_row", "data_row",
            "group_header", "link_banner", "data_row",
            "item_separator",
            "group_header", "link_banner", "data_row",
        ]
        assert [row.slot_id for row in rows if row.row_type == RowType.DATA_ROW] == [1, 2, 3, 4]

    def test_sorts_by_item_then_group_then_load_order(self):
        """Should keep load order as the tie-breaker inside a group."""
        slots = [
            SlotFactory.build(id=7, item_id=11, day_group=1),
            SlotFactory.build(id=5, item_id=10, day_group=2),
            SlotFactory.build(id=9, item_id=10, day_group=1),
            SlotFactory.build(id=2, item_id=10, day_group=1),
        ]

        rows = project(slots, _items(10, 11))

        assert [row.slot_id for row in rows if row.row_type == RowType.DATA_ROW] == [9, 2, 5, 7]

    def test_sequence_restarts_per_group(self, two_group_campaign):
        items, slots = two_group_campaign

        rows = project(slots, {item.id: item for item in items})

        data = [row for row in rows if row.row_type == RowType.DATA_ROW]
        assert [row.sequence for row in data] == [1, 2, 1, 1]
        assert data[0].values["sequence"] == 1

    def test_empty_input_gives_no_rows(self):
        assert project([], _items(10)) == []


class TestProjectValues:
    """Tests for header / banner / data values"""

    def test_header_takes_overrides_from_first_slot_and_catalogue_from_item(self, two_group_campaign):
        items, slots = two_group_campaign

        header = project(slots, {item.id: item for item in items})[0]

        assert header.values["keyword"] == "mug"
        assert header.values["platform"] == items[0].platform
        assert header.values["total_purchase_count"] == items[0].total_purchase_count
        assert header.total_slots == 2

    def test_blank_override_falls_back_to_item_value(self, two_group_campaign):
        items, slots = two_group_campaign

        rows = project(slots, {item.id: item for item in items})

        assert rows[0].values["product_name"] == "Cup"
        assert rows[2].values["product_name"] == "Cup"
        assert rows[8].values["product_name"] == "Plate"

    def test_banner_carries_group_token_and_url(self, two_group_campaign):
        items, slots = two_group_campaign

        rows = project(
            slots,
            {item.id: item for item in items},
            upload_url_for=lambda token: f"https://app/upload-slot/{token}",
        )

        banner = rows[1]
        assert banner.upload_token == "token-10-1"
        assert banner.upload_url == "https://app/upload-slot/token-10-1"

    def test_data_row_references_slot_and_buyer(self, two_group_campaign):
        items, slots = two_group_campaign

        row = project(slots, {item.id: item for item in items})[2]

        assert row.refs.slot_id == 1
        assert row.refs.buyer_id == 101
        assert row.values["amount"] == 1000
        assert row.has_buyer_data

    def test_data_row_shows_expected_buyer_in_column_four(self):
        slots = [SlotFactory.build(id=1, item_id=10, expected_buyer="Kim")]

        row = project(slots, _items(10))[2]

        assert row.values["expected_buyer"] == "Kim"
        assert "purchase_option" not in row.values

    def test_completion_counts_review_images(self):
        slots = [
            SlotFactory.build(id=1, item_id=10, buyer=BuyerFactory.with_review(id=1)),
            SlotFactory.build(id=2, item_id=10),
        ]

        header = project(slots, _items(10))[0]

        assert header.completed_slots == 1
        assert not header.is_all_completed

    def test_display_status(self):
        """Should show completed once reviewed, else stored status, else "-"."""
        reviewed = SlotFactory.build(id=1, status="active", buyer=BuyerFactory.with_review(id=1))
        active = SlotFactory.build(id=2, status="active")
        blank = SlotFactory.build(id=3, status=None)

        assert display_status(reviewed) == "completed"
        assert display_status(active) == "active"
        assert display_status(blank) == "-"


class TestProjectErrors:
    """Tests for malformed input"""

    def test_slot_with_unknown_item_is_skipped(self):
        """Should skip the bad slot and keep the rest of the sheet."""
        slots = [
            SlotFactory.build(id=1, item_id=10),
            SlotFactory.build(id=2, item_id=999),
        ]

        rows = project(slots, _items(10))

        assert [row.slot_id for row in rows if row.row_type == RowType.DATA_ROW] == [1]


class TestProjectProperties:
    """Randomised checks over generated slot lists"""

    @pytest.mark.parametrize("seed", range(20))
    def test_projection_is_deterministic(self, seed):
        rng = random.Random(seed)
        slots = SlotFactory.random_batch(rng, count=rng.randint(0, 40), item_ids=[10, 11, 12])
        items = _items(10, 11, 12)

        assert project(slots, items) == project(slots, items)

    @pytest.mark.parametrize("seed", range(20))
    def test_every_data_row_is_framed_by_its_group(self, seed):
        """Should precede each group's data rows with exactly one header + banner pair."""
        rng = random.Random(seed)
        slots = SlotFactory.random_batch(rng, count=rng.randint(1, 40), item_ids=[10, 11, 12])

        rows = project(slots, _items(10, 11, 12))

        current = None
        seen_groups = set()
        seen_items = []
        for position, row in enumerate(rows):
            if row.row_type == RowType.GROUP_HEADER:
                key = (row.item_id, row.day_group)
                assert key not in seen_groups
                seen_groups.add(key)
                assert rows[position + 1].row_type == RowType.LINK_BANNER
                assert (rows[position + 1].item_id, rows[position + 1].day_group) == key
                current = key
                if not seen_items or seen_items[-1] != row.item_id:
                    assert row.item_id not in seen_items
                    if seen_items:
                        assert rows[position - 1].row_type == RowType.ITEM_SEPARATOR
                    seen_items.append(row.item_id)
            elif row.row_type == RowType.DATA_ROW:
                assert (row.item_id, row.day_group) == current

        assert sum(1 for row in rows if row.row_type == RowType.DATA_ROW) == len(slots)
        assert rows[0].row_type == RowType.GROUP_HEADER


class TestIndexAndCollapse:
    """Tests for index_rows() and collapse()"""

    def test_index_rows(self, two_group_campaign):
        items, slots = two_group_campaign
        rows = project(slots, {item.id: item for item in items})

        index = index_rows(rows)

        assert index.row_of_slot(4) == 10
        assert index.header_rows[(10, 2)] == 4
        assert index.banner_rows[(11, 1)] == 9
        assert index.row_of_slot(404) is None

    def test_collapse_keeps_headers_and_separators(self, two_group_campaign):
        """Should drop banners and data rows of collapsed items only."""
        items, slots = two_group_campaign
        rows = project(slots, {item.id: item for item in items})

        collapsed = collapse(rows, {10})

        assert _kinds(collapsed) == [
            "group_header", "group_header", "item_separator",
            "group_header", "link_banner", "data_row",
        ]

    def test_collapse_nothing_returns_all_rows(self, two_group_campaign):
        items, slots = two_group_campaign
        rows = project(slots, {item.id: item for item in items})

        assert collapse(rows, set()) == rows
