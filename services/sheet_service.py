"""
Sheet service — one editable campaign sheet and the registry of open sheets.

A SheetSession wires the engine together:

    SlotStore → project() → collapse() → grid
    grid edit → ChangeTracker → commit() → CommitCoordinator → SlotStore

Commit and reload share one asyncio lock, so a reload requested while a
commit is running waits for it. A second commit while one is running is
rejected. Edits keep flowing during a commit into a fresh pending set.
"""

import asyncio
from io import BytesIO
from typing import Any, Callable, Iterable, Optional

import structlog

from config import settings
from exceptions import CommitInProgressError, SheetNotLoadedError
from models.sheet import (
    CellEdit,
    CommitResult,
    EditResponse,
    FilterCondition,
    GroupSplitResult,
    SheetView,
    ViewPreferences,
)
from models.slot import Item, Slot
from services.change_tracker import ChangeTracker
from services.commit_coordinator import CommitCoordinator
from services.filter_engine import apply_filters, distinct_values
from services.row_projector import collapse, index_rows, project
from services.sheet_export_service import get_sheet_export_service
from services.sheet_summary import summarize
from services.slot_gateway import get_slot_gateway
from services.slot_store import SlotStore

logger = structlog.get_logger(__name__)


class SheetSession:
    """
    Editable sheet for one campaign.

    Args:
        campaign_id: Campaign shown by the sheet
        gateway: Persistence collaborator (defaults to the Supabase gateway)
        items: Snapshot of the campaign's items used for the first load
        on_change_count_changed: Called with the pending change count
        on_commit_result: Called with (success, error message) after a commit
    """

    def __init__(
        self,
        campaign_id: int,
        gateway: Any = None,
        items: Optional[Iterable[Item]] = None,
        on_change_count_changed: Optional[Callable[[int], None]] = None,
        on_commit_result: Optional[Callable[[bool, Optional[str]], None]] = None,
    ):
        self.campaign_id = campaign_id
        self.gateway = gateway if gateway is not None else get_slot_gateway()
        self.store = SlotStore(campaign_id)
        self.tracker = ChangeTracker(self.store, on_change_count_changed)
        self.coordinator = CommitCoordinator(self.store, self.gateway)
        self.conditions: list[FilterCondition] = []
        self.preferences = ViewPreferences()

        self._initial_items = list(items) if items is not None else None
        self._on_commit_result = on_commit_result
        self._lock = asyncio.Lock()
        self._committing = False
        self._rows: list = []
        self._rows_version = -1

    # ===================
    # STATE
    # ===================

    @property
    def loaded(self) -> bool:
        return self.store.loaded

    @property
    def commit_in_progress(self) -> bool:
        return self._committing

    @property
    def change_count(self) -> int:
        return self.tracker.change_count

    @property
    def rows(self) -> list:
        """Full projection of the store, recomputed when the store changes."""
        if self._rows_version != self.store.version:
            self._rows = project(self.store.slots, self.store.items, settings.upload_url_for)
            self._rows_version = self.store.version
        return self._rows

    @property
    def displayed_rows(self) -> list:
        """Rows the grid shows: the projection minus collapsed items."""
        return collapse(self.rows, self.preferences.collapsed_item_ids)

    @property
    def visible_rows(self) -> Optional[list[int]]:
        """Indices into displayed_rows left by the filter, None when unfiltered."""
        return apply_filters(self.displayed_rows, self.conditions)

    def _require_loaded(self) -> None:
        if not self.store.loaded:
            raise SheetNotLoadedError(self.campaign_id)

    # ===================
    # LOAD
    # ===================

    async def load(self, items: Optional[Iterable[Item]] = None) -> None:
        """
        Load (or reload) slots and items from the backend.

        Waits for a running commit. Pending edits and filters are dropped.

        Args:
            items: Fresh item snapshot; fetched from the backend when omitted
        """
        async with self._lock:
            await self._load(items)

    async def reload(self) -> None:
        await self.load()

    async def _load(self, items: Optional[Iterable[Item]]) -> None:
        if items is None and not self.store.loaded and self._initial_items is not None:
            items = self._initial_items
        if items is None:
            items = await asyncio.to_thread(self.gateway.fetch_items, self.campaign_id)
        items = list(items)

        slots: list[Slot] = await asyncio.to_thread(self.gateway.fetch_slots, self.campaign_id)

        known = {item.id for item in items}
        missing = sorted({slot.item_id for slot in slots} - known)
        if missing:
            items.extend(await asyncio.to_thread(self.gateway.fetch_items_by_ids, missing))

        self.store.replace(slots, items)
        self.tracker.clear()
        self.conditions = []
        self.preferences = self._prune_preferences(self.preferences)

        logger.info(
            "sheet_loaded",
            campaign_id=self.campaign_id,
            slot_count=len(slots),
            item_count=len(items),
        )

    # ===================
    # EDITS / COMMIT
    # ===================

    def record_edits(self, edits: Iterable[CellEdit]) -> EditResponse:
        """
        Record grid edits addressed by (displayed row, column).

        Edits on rows that do not exist, read-only cells and structural rows
        are ignored.
        """
        self._require_loaded()

        rows = self.displayed_rows
        recorded = 0
        ignored = 0
        for edit in edits:
            if edit.row_index >= len(rows):
                logger.debug(
                    "edit_ignored_row_out_of_range",
                    campaign_id=self.campaign_id,
                    row_index=edit.row_index,
                )
                ignored += 1
                continue
            if self.tracker.record_cell(rows[edit.row_index], edit.column_index, edit.value):
                recorded += 1
            else:
                ignored += 1

        return EditResponse(recorded=recorded, ignored=ignored, change_count=self.change_count)

    async def commit(self) -> CommitResult:
        """
        Save pending edits.

        Raises:
            CommitInProgressError: If a commit for this sheet is already running
            SheetNotLoadedError: If the sheet was never loaded
        """
        self._require_loaded()
        if self._committing:
            raise CommitInProgressError(self.campaign_id)

        self._committing = True
        try:
            async with self._lock:
                pending = self.tracker.detach()
                try:
                    result, remaining = await self.coordinator.commit(pending)
                except Exception as e:
                    self.tracker.settle(pending)
                    logger.error("commit_aborted", campaign_id=self.campaign_id, error=str(e))
                    if self._on_commit_result is not None:
                        self._on_commit_result(False, str(e))
                    raise
                self.tracker.settle(remaining)
        finally:
            self._committing = False

        result.remaining_changes = self.tracker.change_count

        if self._on_commit_result is not None:
            self._on_commit_result(result.success, "; ".join(result.errors) or None)

        return result

    # ===================
    # FILTERS / PREFERENCES
    # ===================

    def set_filters(self, conditions: Iterable[FilterCondition]) -> Optional[list[int]]:
        self.conditions = list(conditions)
        logger.info(
            "filters_set",
            campaign_id=self.campaign_id,
            condition_count=len(self.conditions),
        )
        return self.visible_rows

    def clear_filters(self) -> None:
        self.conditions = []

    def filter_values(self, column_index: int) -> list[str]:
        """Distinct cell texts of a column over the displayed data rows."""
        self._require_loaded()
        return distinct_values(self.displayed_rows, column_index)

    def set_preferences(self, preferences: ViewPreferences) -> ViewPreferences:
        self.preferences = self._prune_preferences(preferences)
        return self.preferences

    def _prune_preferences(self, preferences: ViewPreferences) -> ViewPreferences:
        # Collapsed IDs of items that are gone are dropped
        if not self.store.loaded:
            return preferences
        known = set(self.store.items)
        return preferences.model_copy(update={
            "collapsed_item_ids": {i for i in preferences.collapsed_item_ids if i in known},
        })

    # ===================
    # STRUCTURAL EDITS
    # ===================

    async def delete_slots(self, slot_ids: list[int]) -> dict:
        self._require_loaded()
        result = await asyncio.to_thread(self.gateway.delete_slots, slot_ids)
        await self.reload()
        return result

    async def delete_group(self, item_id: int, day_group: int) -> dict:
        self._require_loaded()
        result = await asyncio.to_thread(self.gateway.delete_group, item_id, day_group)
        await self.reload()
        return result

    async def add_slot(self, item_id: int, day_group: int) -> Slot:
        self._require_loaded()
        slot = await asyncio.to_thread(self.gateway.create_slot, item_id, day_group)
        await self.reload()
        return slot

    async def split_group(self, slot_id: int) -> GroupSplitResult:
        self._require_loaded()
        result = await asyncio.to_thread(self.gateway.split_group, slot_id)
        await self.reload()
        return GroupSplitResult(**result)

    # ===================
    # OUTPUT
    # ===================

    def row_of_slot(self, slot_id: int) -> Optional[int]:
        """Displayed row index of a slot, None if hidden or unknown."""
        return index_rows(self.displayed_rows).row_of_slot(slot_id)

    def view(self) -> SheetView:
        """Snapshot of everything the grid renders."""
        self._require_loaded()

        displayed = self.displayed_rows
        visible = apply_filters(displayed, self.conditions)

        return SheetView(
            campaign_id=self.campaign_id,
            rows=displayed,
            visible_rows=visible,
            change_count=self.change_count,
            commit_in_progress=self._committing,
            summary=summarize(self.rows, visible, displayed),
            preferences=self.preferences,
        )

    def export(self, role: str) -> BytesIO:
        self._require_loaded()
        return get_sheet_export_service().generate_sheet_excel(
            self.campaign_id, self.rows, role, self.preferences
        )


class SheetRegistry:
    """Open sheets keyed by campaign ID."""

    def __init__(self, gateway_factory: Callable[[], Any] = get_slot_gateway):
        self._gateway_factory = gateway_factory
        self._sessions: dict[int, SheetSession] = {}

    def get(self, campaign_id: int) -> SheetSession:
        session = self._sessions.get(campaign_id)
        if session is None:
            session = SheetSession(
                campaign_id,
                gateway=self._gateway_factory(),
                on_change_count_changed=lambda count: logger.debug(
                    "change_count_changed", campaign_id=campaign_id, count=count
                ),
                on_commit_result=lambda success, error: logger.info(
                    "commit_result", campaign_id=campaign_id, success=success, error=error
                ),
            )
            self._sessions[campaign_id] = session
        return session

    async def get_loaded(self, campaign_id: int) -> SheetSession:
        """Get a session, loading it on first access."""
        session = self.get(campaign_id)
        if not session.loaded:
            await session.load()
        return session

    def open_sheets(self) -> list[dict]:
        """Campaigns with an open session and their pending change counts."""
        return [
            {
                "campaign_id": campaign_id,
                "loaded": session.loaded,
                "change_count": session.change_count,
                "commit_in_progress": session.commit_in_progress,
            }
            for campaign_id, session in sorted(self._sessions.items())
        ]

    def close(self, campaign_id: int) -> None:
        self._sessions.pop(campaign_id, None)

    def clear(self) -> None:
        self._sessions.clear()


# Singleton instance
_registry: Optional[SheetRegistry] = None


def get_sheet_registry() -> SheetRegistry:
    """Get or create SheetRegistry instance."""
    global _registry
    if _registry is None:
        _registry = SheetRegistry()
    return _registry
