"""
Business logic services.

The sheet engine (store, projector, mapper, tracker, coordinator, filters)
plus the Supabase gateway, summary and export around it.
"""

from services.slot_store import SlotStore
from services.row_projector import project, index_rows, collapse, RowIndex
from services.change_tracker import ChangeTracker, PendingChangeSet, SlotPatch
from services.commit_coordinator import CommitCoordinator
from services.filter_engine import apply_filters
from services.sheet_summary import summarize
from services.slot_gateway import SlotGateway, get_slot_gateway
from services.sheet_export_service import SheetExportService, get_sheet_export_service
from services.sheet_service import SheetSession, SheetRegistry, get_sheet_registry

__all__ = [
    "SlotStore",
    "project",
    "index_rows",
    "collapse",
    "RowIndex",
    "ChangeTracker",
    "PendingChangeSet",
    "SlotPatch",
    "CommitCoordinator",
    "apply_filters",
    "summarize",
    "SlotGateway",
    "get_slot_gateway",
    "SheetExportService",
    "get_sheet_export_service",
    "SheetSession",
    "SheetRegistry",
    "get_sheet_registry",
]
