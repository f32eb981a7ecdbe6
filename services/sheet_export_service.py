"""
Sheet export service — Excel download of a campaign sheet.

One worksheet row per slot, grouped like the grid (a bold line per day
group). The operator export includes the review fee; the sales export
does not.
"""

from io import BytesIO
from typing import Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
import structlog

from models.sheet import RowType, ViewPreferences
from services.column_mapper import COLUMN_LABELS, DEFAULT_COLUMN_WIDTHS, field_for
from utils.text_utils import cell_text

logger = structlog.get_logger(__name__)

ROLE_OPERATOR = "operator"
ROLE_SALES = "sales"
EXPORT_ROLES = (ROLE_OPERATOR, ROLE_SALES)

# Fields left out of the sales export
_SALES_HIDDEN_FIELDS = frozenset({"review_cost"})

_HEADER_FILL = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
_GROUP_FILL = PatternFill(start_color="F2F2F2", end_color="F2F2F2", fill_type="solid")

# Excel characters per grid pixel
_PIXELS_PER_CHAR = 7


def export_columns(role: str) -> list[int]:
    """Data-row columns included for a role (column 0 is the toggle, never exported)."""
    hidden = _SALES_HIDDEN_FIELDS if role == ROLE_SALES else frozenset()
    return [
        column for column in range(1, len(DEFAULT_COLUMN_WIDTHS))
        if field_for(RowType.DATA_ROW, column) is not None
        and field_for(RowType.DATA_ROW, column) not in hidden
    ]


class SheetExportService:
    """Builds .xlsx files from display rows."""

    def generate_sheet_excel(
        self,
        campaign_id: int,
        rows: Sequence,
        role: str = ROLE_OPERATOR,
        preferences: Optional[ViewPreferences] = None,
    ) -> BytesIO:
        """
        Generate the Excel file for a sheet.

        Args:
            campaign_id: Campaign the rows belong to
            rows: Display rows (full projection)
            role: "operator" or "sales"
            preferences: Column widths to carry over

        Returns:
            BytesIO containing the workbook
        """
        columns = export_columns(role)
        preferences = preferences or ViewPreferences()

        wb = Workbook()
        ws = wb.active
        ws.title = f"Campaign {campaign_id}"

        labels = COLUMN_LABELS[RowType.DATA_ROW]
        for offset, column in enumerate(columns, start=1):
            cell = ws.cell(row=1, column=offset, value=labels[column])
            cell.font = Font(bold=True)
            cell.fill = _HEADER_FILL
            cell.alignment = Alignment(horizontal="center")

            width = preferences.width_for(column, DEFAULT_COLUMN_WIDTHS[column])
            ws.column_dimensions[get_column_letter(offset)].width = max(width // _PIXELS_PER_CHAR, 6)

        ws.freeze_panes = "A2"

        excel_row = 2
        slot_count = 0
        for row in rows:
            if row.row_type == RowType.GROUP_HEADER:
                title = f"{cell_text(row.values.get('product_name'))} - day {row.day_group}"
                cell = ws.cell(row=excel_row, column=1, value=title)
                cell.font = Font(bold=True)
                for offset in range(1, len(columns) + 1):
                    ws.cell(row=excel_row, column=offset).fill = _GROUP_FILL
                excel_row += 1
            elif row.row_type == RowType.DATA_ROW:
                for offset, column in enumerate(columns, start=1):
                    value = row.values.get(field_for(RowType.DATA_ROW, column))
                    ws.cell(row=excel_row, column=offset, value=value if value is None else cell_text(value))
                excel_row += 1
                slot_count += 1

        logger.info(
            "sheet_exported",
            campaign_id=campaign_id,
            role=role,
            slot_count=slot_count,
        )

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output


# Singleton instance
_export_service: Optional[SheetExportService] = None


def get_sheet_export_service() -> SheetExportService:
    """Get or create SheetExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = SheetExportService()
    return _export_service
