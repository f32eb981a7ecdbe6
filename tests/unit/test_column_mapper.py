"""
Unit tests for the column mapper.

Run: pytest tests/unit/test_column_mapper.py -v
"""

import pytest

from models.sheet import RowType
from services.column_mapper import (
    BUYER_FIELDS,
    COLUMN_COUNT,
    COLUMN_LABELS,
    ITEM_FIELDS,
    OVERRIDE_FIELDS,
    column_for,
    field_for,
    is_editable,
    normalize_value,
    owner_of,
)


class TestFieldFor:
    """Tests for field_for()"""

    def test_same_column_means_different_fields_per_row_type(self):
        """Should map column 5 to unit price on headers and contact on data rows."""
        assert field_for(RowType.GROUP_HEADER, 5) == "product_price"
        assert field_for(RowType.DATA_ROW, 5) == "contact"

    @pytest.mark.parametrize("row_type", [RowType.ITEM_SEPARATOR, RowType.LINK_BANNER])
    def test_structural_rows_map_every_column_to_none(self, row_type):
        """Should return None for every column of separators and banners."""
        assert all(field_for(row_type, column) is None for column in range(COLUMN_COUNT))

    @pytest.mark.parametrize("column", [-1, COLUMN_COUNT, 99])
    def test_out_of_range_column_is_none(self, column):
        assert field_for(RowType.DATA_ROW, column) is None

    def test_accepts_row_type_value_strings(self):
        assert field_for("data_row", 12) == "amount"


class TestColumnFor:
    """Tests for column_for()"""

    @pytest.mark.parametrize("row_type", [RowType.GROUP_HEADER, RowType.DATA_ROW])
    def test_inverse_of_field_for(self, row_type):
        """Should round-trip every mapped column."""
        for column in range(COLUMN_COUNT):
            name = field_for(row_type, column)
            if name is not None:
                assert column_for(row_type, name) == column

    def test_field_not_on_row_type_is_none(self):
        assert column_for(RowType.DATA_ROW, "platform") is None
        assert column_for(RowType.GROUP_HEADER, "amount") is None
        assert column_for(RowType.LINK_BANNER, "date") is None


class TestEditability:
    """Tests for is_editable() and owner_of()"""

    def test_data_row_copies_of_group_fields_are_read_only(self):
        """Should refuse product name, sequence and review image on data rows."""
        for name in ("sequence", "product_name", "review_image"):
            assert not is_editable(RowType.DATA_ROW, column_for(RowType.DATA_ROW, name))

    def test_header_fields_are_editable(self):
        assert is_editable(RowType.GROUP_HEADER, column_for(RowType.GROUP_HEADER, "keyword"))
        assert not is_editable(RowType.GROUP_HEADER, 0)

    def test_owner_of_header_fields(self):
        """Should send catalogue fields to the item and overrides to the group."""
        assert owner_of(RowType.GROUP_HEADER, "total_purchase_count") == "item"
        assert owner_of(RowType.GROUP_HEADER, "keyword") == "group"
        assert owner_of(RowType.GROUP_HEADER, "date") == "group"

    def test_owner_of_data_row_fields(self):
        assert owner_of(RowType.DATA_ROW, "amount") == "buyer"
        assert owner_of(RowType.DATA_ROW, "status") == "slot"
        assert owner_of(RowType.DATA_ROW, "date") == "slot"
        assert owner_of(RowType.DATA_ROW, "product_name") is None

    def test_expected_buyer_is_editable_on_data_rows(self):
        """Should store the expected buyer against the slot."""
        column = column_for(RowType.DATA_ROW, "expected_buyer")

        assert column == 4
        assert is_editable(RowType.DATA_ROW, column)
        assert owner_of(RowType.DATA_ROW, "expected_buyer") == "slot"
        assert column_for(RowType.DATA_ROW, "purchase_option") is None

    def test_structural_rows_own_nothing(self):
        assert owner_of(RowType.ITEM_SEPARATOR, "keyword") is None
        assert owner_of(RowType.LINK_BANNER, "amount") is None

    def test_every_header_column_has_an_owner(self):
        for column in range(COLUMN_COUNT):
            name = field_for(RowType.GROUP_HEADER, column)
            if name is not None:
                assert name in ITEM_FIELDS | OVERRIDE_FIELDS

    def test_labels_cover_all_columns(self):
        assert len(COLUMN_LABELS[RowType.GROUP_HEADER]) == COLUMN_COUNT
        assert len(COLUMN_LABELS[RowType.DATA_ROW]) == COLUMN_COUNT
        assert "amount" in BUYER_FIELDS


class TestNormalizeValue:
    """Tests for normalize_value()"""

    @pytest.mark.parametrize("field_name", [
        "amount", "review_cost", "product_price",
        "total_purchase_count", "sale_price_per_unit", "courier_price_per_unit",
    ])
    def test_numeric_fields_keep_digits(self, field_name):
        assert normalize_value(field_name, "15,000원") == 15000

    def test_blank_numeric_value_is_none(self):
        assert normalize_value("amount", "") is None
        assert normalize_value("amount", None) is None

    def test_other_fields_pass_through(self):
        assert normalize_value("keyword", "15,000원") == "15,000원"
        assert normalize_value("expected_buyer", "") == ""
