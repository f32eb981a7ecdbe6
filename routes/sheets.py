"""
Campaign sheet API routes.

The grid talks to one SheetSession per campaign. Row and column indices in
edit requests refer to the rows returned by GET /{campaign_id} (collapsed
items already removed).
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, StreamingResponse
import structlog

from exceptions import AppError, CommitFailedError
from models.sheet import (
    CommitResult,
    EditBatch,
    EditResponse,
    FilterRequest,
    GroupSplitResult,
    SheetView,
    SlotDeleteRequest,
    ViewPreferences,
)
from services.sheet_export_service import ROLE_OPERATOR
from services.sheet_service import get_sheet_registry

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# VIEW / LOAD
# ===================

@router.get("/{campaign_id}", response_model=SheetView)
async def get_sheet(campaign_id: int):
    """
    Get the sheet of a campaign, loading it on first access.

    Returns rows, visible row indices (null when unfiltered), the pending
    change count and summary counters.
    """
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        return session.view()
    except Exception as e:
        return handle_error(e)


@router.post("/{campaign_id}/reload", response_model=SheetView)
async def reload_sheet(campaign_id: int):
    """
    Reload from the backend.

    Waits for a running save. Unsaved edits and filters are discarded.
    """
    try:
        session = get_sheet_registry().get(campaign_id)
        await session.load()
        return session.view()
    except Exception as e:
        return handle_error(e)


# ===================
# EDITS / SAVE
# ===================

@router.post("/{campaign_id}/edits", response_model=EditResponse)
async def record_edits(campaign_id: int, body: EditBatch):
    """Record cell edits; nothing is written until commit."""
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        return session.record_edits(body.edits)
    except Exception as e:
        return handle_error(e)


@router.post("/{campaign_id}/commit", response_model=CommitResult)
async def commit_sheet(campaign_id: int):
    """
    Save pending edits.

    Patches the backend rejected stay pending for a retry.

    Raises:
        409: A save for this sheet is already running
        502: Part of the save failed (details list the failed slots and items)
    """
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        result = await session.commit()
        if not result.success:
            raise CommitFailedError(result.failed_slot_ids, result.failed_item_ids, result.errors)
        return result
    except Exception as e:
        return handle_error(e)


# ===================
# FILTERS / PREFERENCES
# ===================

@router.put("/{campaign_id}/filters", response_model=SheetView)
async def set_filters(campaign_id: int, body: FilterRequest):
    """Replace the active filter conditions."""
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        session.set_filters(body.conditions)
        return session.view()
    except Exception as e:
        return handle_error(e)


@router.delete("/{campaign_id}/filters", response_model=SheetView)
async def clear_filters(campaign_id: int):
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        session.clear_filters()
        return session.view()
    except Exception as e:
        return handle_error(e)


@router.get("/{campaign_id}/filters/{column_index}/values", response_model=list[str])
async def get_filter_values(campaign_id: int, column_index: int):
    """Distinct values of a column for the by-value filter picker."""
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        return session.filter_values(column_index)
    except Exception as e:
        return handle_error(e)


@router.put("/{campaign_id}/preferences", response_model=SheetView)
async def set_preferences(campaign_id: int, body: ViewPreferences):
    """Replace column widths and collapsed items."""
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        session.set_preferences(body)
        return session.view()
    except Exception as e:
        return handle_error(e)


# ===================
# STRUCTURAL EDITS
# ===================

@router.delete("/{campaign_id}/slots")
async def delete_slots(campaign_id: int, body: SlotDeleteRequest):
    """Delete the selected slots, then reload."""
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        return await session.delete_slots(body.slot_ids)
    except Exception as e:
        return handle_error(e)


@router.delete("/{campaign_id}/groups/{item_id}/{day_group}")
async def delete_group(campaign_id: int, item_id: int, day_group: int):
    """Delete every slot of a day group, then reload."""
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        return await session.delete_group(item_id, day_group)
    except Exception as e:
        return handle_error(e)


@router.post("/{campaign_id}/groups/{item_id}/{day_group}/slots", status_code=201)
async def add_slot(campaign_id: int, item_id: int, day_group: int):
    """
    Append a slot to a day group, then reload.

    The response carries the new row's displayed index for the grid to scroll to.
    """
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        slot = await session.add_slot(item_id, day_group)
        return {**slot.model_dump(), "row_index": session.row_of_slot(slot.id)}
    except Exception as e:
        return handle_error(e)


@router.post("/{campaign_id}/slots/{slot_id}/split", response_model=GroupSplitResult)
async def split_group(campaign_id: int, slot_id: int):
    """
    Close the day after a slot: later slots of its group move to a new group.

    Raises:
        422: The slot is the last one of its group
    """
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        return await session.split_group(slot_id)
    except Exception as e:
        return handle_error(e)


# ===================
# EXPORT
# ===================

@router.get("/{campaign_id}/export")
async def export_sheet(
    campaign_id: int,
    role: str = Query(ROLE_OPERATOR, pattern="^(operator|sales)$", description="Export variant"),
):
    """Download the sheet as .xlsx."""
    try:
        session = await get_sheet_registry().get_loaded(campaign_id)
        output = session.export(role)
        filename = f"campaign_{campaign_id}_{role}.xlsx"
        return StreamingResponse(
            output,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    except Exception as e:
        return handle_error(e)
