"""
Commit coordinator — sends a pending change set to the backend and merges
what was accepted into the slot store.

Two independent halves, issued concurrently:
    slots → one update_slots_batch call with every slot patch
    items → one update_item call per item

Slots the batch wrote before a failure are kept; the rest of the slot half
stays pending. Item updates succeed or fail one by one. Patches for slots or
items deleted elsewhere are dropped. Whatever failed is handed back so it
can stay pending for a retry.
"""

import asyncio
from typing import Any
import structlog

from exceptions import ItemNotFoundError
from models.sheet import CommitResult
from services.change_tracker import PendingChangeSet
from services.slot_store import SlotStore

logger = structlog.get_logger(__name__)


def _error_text(error: BaseException) -> str:
    message = getattr(error, "message", None) or str(error)
    return message or type(error).__name__


class CommitCoordinator:
    """Issues slot and item updates for one sheet and reconciles the store."""

    def __init__(self, store: SlotStore, gateway: Any):
        self.store = store
        self.gateway = gateway

    async def commit(self, pending: PendingChangeSet) -> tuple[CommitResult, PendingChangeSet]:
        """
        Commit a detached change set.

        Args:
            pending: Change set no longer receiving edits

        Returns:
            (result, remaining) where remaining holds the patches the backend
            did not accept
        """
        remaining = PendingChangeSet()

        if pending.is_empty:
            return CommitResult(success=True), remaining

        slot_ids = list(pending.slot_patches)
        item_ids = list(pending.item_patches)

        calls = []
        if slot_ids:
            calls.append(asyncio.to_thread(self.gateway.update_slots_batch, pending.slot_payloads()))
        for item_id in item_ids:
            calls.append(asyncio.to_thread(
                self.gateway.update_item, item_id, dict(pending.item_patches[item_id])
            ))

        logger.info(
            "commit_started",
            campaign_id=self.store.campaign_id,
            slot_patches=len(slot_ids),
            item_patches=len(item_ids),
        )

        # A failure in one half must not stop the other from being processed
        outcomes = await asyncio.gather(*calls, return_exceptions=True)

        errors: list[str] = []
        committed_slot_ids: list[int] = []
        committed_item_ids: list[int] = []
        skipped_slot_ids: list[int] = []
        skipped_item_ids: list[int] = []

        position = 0
        if slot_ids:
            slot_outcome = outcomes[position]
            position += 1
            if isinstance(slot_outcome, BaseException):
                # Slots written before the failure are in the error details
                details = getattr(slot_outcome, "details", None) or {}
                written = set(details.get("updated_slot_ids", []))
                gone = set(details.get("skipped_slot_ids", []))
                errors.append(_error_text(slot_outcome))
                logger.error(
                    "slot_batch_failed",
                    campaign_id=self.store.campaign_id,
                    slot_count=len(slot_ids),
                    written=len(written),
                    error=_error_text(slot_outcome),
                )
            else:
                written = set(slot_outcome["updated"])
                gone = set(slot_outcome["skipped"])

            for slot_id in slot_ids:
                patch = pending.slot_patches[slot_id]
                if slot_id in written:
                    self.store.merge_slot_patch(slot_id, patch.slot_fields, patch.buyer_fields)
                    committed_slot_ids.append(slot_id)
                elif slot_id in gone:
                    skipped_slot_ids.append(slot_id)
                else:
                    remaining.slot_patches[slot_id] = patch.copy()

            if skipped_slot_ids:
                logger.warning(
                    "slot_patches_dropped",
                    campaign_id=self.store.campaign_id,
                    slot_ids=skipped_slot_ids,
                )

        for item_id, item_outcome in zip(item_ids, outcomes[position:]):
            if isinstance(item_outcome, ItemNotFoundError):
                skipped_item_ids.append(item_id)
                logger.warning(
                    "item_patch_dropped",
                    campaign_id=self.store.campaign_id,
                    item_id=item_id,
                )
            elif isinstance(item_outcome, BaseException):
                errors.append(_error_text(item_outcome))
                remaining.item_patches[item_id] = dict(pending.item_patches[item_id])
                logger.error(
                    "item_update_failed",
                    campaign_id=self.store.campaign_id,
                    item_id=item_id,
                    error=_error_text(item_outcome),
                )
            else:
                self.store.merge_item_patch(item_id, pending.item_patches[item_id])
                committed_item_ids.append(item_id)

        result = CommitResult(
            success=remaining.is_empty,
            committed_slot_ids=committed_slot_ids,
            committed_item_ids=committed_item_ids,
            failed_slot_ids=list(remaining.slot_patches),
            failed_item_ids=list(remaining.item_patches),
            skipped_slot_ids=skipped_slot_ids,
            skipped_item_ids=skipped_item_ids,
            errors=errors,
            remaining_changes=remaining.count,
        )

        logger.info(
            "commit_finished",
            campaign_id=self.store.campaign_id,
            success=result.success,
            committed_slots=len(committed_slot_ids),
            committed_items=len(committed_item_ids),
            failed_slots=len(result.failed_slot_ids),
            failed_items=len(result.failed_item_ids),
            skipped=len(skipped_slot_ids) + len(skipped_item_ids),
        )
        return result, remaining
