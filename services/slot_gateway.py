"""
Slot gateway — Supabase persistence for the sheet.

Reads items and slots (with embedded buyer and review images) and writes
field-level patches. Structural operations (add, delete, split) live here
too; the sheet reloads after each of them.

All methods are synchronous; the commit coordinator runs them in worker
threads.
"""

import uuid
from typing import Any, Optional

import structlog

from config import get_supabase_client, settings
from exceptions import DatabaseError, GroupSplitError, ItemNotFoundError, SlotNotFoundError
from models.slot import Item, Slot, SlotStatus
from services.column_mapper import BUYER_FIELDS, OVERRIDE_FIELDS, SLOT_FIELDS
from utils.text_utils import is_blank, normalize_account_number

logger = structlog.get_logger(__name__)

# Columns of item_slots the sheet may write
WRITABLE_SLOT_COLUMNS = SLOT_FIELDS | OVERRIDE_FIELDS | {"buyer_id", "day_group"}

def slot_select(buyers_table: str, images_table: str) -> str:
    """Slot columns with the buyer and its images embedded under fixed keys."""
    return f"*, buyer:{buyers_table}(*, images:{images_table}(*))"


def split_patch(patch: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Split a flat slot patch into (slot columns, buyer columns).

    Unknown keys and "id" are dropped.
    """
    slot_fields = {k: v for k, v in patch.items() if k in WRITABLE_SLOT_COLUMNS}
    buyer_fields = {k: v for k, v in patch.items() if k in BUYER_FIELDS}
    return slot_fields, buyer_fields


def _embedded_buyer(row: dict) -> Optional[dict]:
    # PostgREST returns a to-one embed as an object, older setups as a list
    buyer = row.get("buyer")
    if isinstance(buyer, list):
        return buyer[0] if buyer else None
    return buyer


class SlotGateway:
    """
    Supabase access for items, slots and buyers.

    Raises DatabaseError for client failures and the not-found errors for
    missing records.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.items_table = settings.items_table
        self.slots_table = settings.slots_table
        self.buyers_table = settings.buyers_table
        self.images_table = settings.images_table

    # ===================
    # READS
    # ===================

    def fetch_items(self, campaign_id: int) -> list[Item]:
        """
        Get all items of a campaign.

        Args:
            campaign_id: Campaign ID

        Returns:
            Items ordered by display_order, then ID
        """
        try:
            result = (
                self.db.table(self.items_table)
                .select("*")
                .eq("campaign_id", campaign_id)
                .order("display_order")
                .order("id")
                .execute()
            )
        except Exception as e:
            logger.error("fetch_items_failed", campaign_id=campaign_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [Item.model_validate(row) for row in result.data]

    def fetch_items_by_ids(self, item_ids: list[int]) -> list[Item]:
        """Get items by ID (batched lookup for slots whose item is not in the snapshot)."""
        if not item_ids:
            return []

        try:
            result = (
                self.db.table(self.items_table)
                .select("*")
                .in_("id", list(item_ids))
                .execute()
            )
        except Exception as e:
            logger.error("fetch_items_by_ids_failed", count=len(item_ids), error=str(e))
            raise DatabaseError("select", str(e))

        return [Item.model_validate(row) for row in result.data]

    def fetch_slots(self, campaign_id: int, item_ids: Optional[list[int]] = None) -> list[Slot]:
        """
        Get all slots of a campaign with buyer and review images.

        Args:
            campaign_id: Campaign ID
            item_ids: Item IDs of the campaign (looked up when not given)

        Returns:
            Slots in (item, day group, slot number) order
        """
        if item_ids is None:
            item_ids = [item.id for item in self.fetch_items(campaign_id)]
        if not item_ids:
            return []

        try:
            result = (
                self.db.table(self.slots_table)
                .select(slot_select(self.buyers_table, self.images_table))
                .in_("item_id", list(item_ids))
                .order("item_id")
                .order("day_group")
                .order("slot_number")
                .execute()
            )
        except Exception as e:
            logger.error("fetch_slots_failed", campaign_id=campaign_id, error=str(e))
            raise DatabaseError("select", str(e))

        slots = []
        for row in result.data:
            slots.append(Slot.model_validate({**row, "buyer": _embedded_buyer(row)}))

        logger.info("slots_fetched", campaign_id=campaign_id, count=len(slots))
        return slots

    def _get_slot_row(self, slot_id: int) -> dict:
        try:
            result = (
                self.db.table(self.slots_table)
                .select("*")
                .eq("id", slot_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_slot_failed", slot_id=slot_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise SlotNotFoundError(slot_id)
        return result.data[0]

    def _group_rows(self, item_id: int, day_group: int) -> list[dict]:
        result = (
            self.db.table(self.slots_table)
            .select("*")
            .eq("item_id", item_id)
            .eq("day_group", day_group)
            .order("slot_number")
            .execute()
        )
        return result.data

    # ===================
    # PATCHES
    # ===================

    def update_slots_batch(self, patches: list[dict[str, Any]]) -> dict:
        """
        Apply flat slot patches ({"id": ..., **fields}).

        Slot columns go to item_slots. Buyer columns update the linked buyer,
        or create a buyer and link it when the slot has none. Slots that no
        longer exist are skipped, not treated as a failure.

        Args:
            patches: One dict per slot

        Returns:
            {"updated": [slot IDs], "skipped": [slot IDs no longer in the table]}

        Raises:
            DatabaseError: On a client failure. details carries the
                updated_slot_ids / skipped_slot_ids written before it.
        """
        logger.info("updating_slots_batch", count=len(patches))

        updated: list[int] = []
        skipped: list[int] = []
        try:
            for patch in patches:
                slot_id = patch.get("id")
                if slot_id is None:
                    continue

                if self._apply_slot_patch(slot_id, patch):
                    updated.append(slot_id)
                else:
                    logger.warning("slot_patch_skipped_missing_slot", slot_id=slot_id)
                    skipped.append(slot_id)

        except Exception as e:
            logger.error(
                "update_slots_batch_failed",
                count=len(patches),
                written=len(updated),
                error=str(e)
            )
            raise DatabaseError(
                "update",
                getattr(e, "message", None) or str(e),
                {"updated_slot_ids": updated, "skipped_slot_ids": skipped}
            ) from e

        logger.info("slots_batch_updated", count=len(updated), skipped=len(skipped))
        return {"updated": updated, "skipped": skipped}

    def _apply_slot_patch(self, slot_id: int, patch: dict[str, Any]) -> bool:
        """Write one slot patch. False if the slot is gone."""
        slot_fields, buyer_fields = split_patch(patch)

        if buyer_fields:
            try:
                slot_row = self._get_slot_row(slot_id)
            except SlotNotFoundError:
                return False
            buyer_id = slot_row.get("buyer_id")
            if buyer_id:
                self._update_buyer(buyer_id, buyer_fields)
            elif any(not is_blank(v) for v in buyer_fields.values()):
                slot_fields["buyer_id"] = self._create_buyer(slot_row, buyer_fields)

        if slot_fields:
            result = (
                self.db.table(self.slots_table)
                .update(slot_fields)
                .eq("id", slot_id)
                .execute()
            )
            if not result.data:
                return False
        return True

    def _update_buyer(self, buyer_id: int, buyer_fields: dict[str, Any]) -> None:
        data = dict(buyer_fields)
        if "account_info" in data:
            data["account_normalized"] = normalize_account_number(data["account_info"])

        (
            self.db.table(self.buyers_table)
            .update(data)
            .eq("id", buyer_id)
            .execute()
        )

    def _create_buyer(self, slot_row: dict, buyer_fields: dict[str, Any]) -> Optional[int]:
        data = {k: v for k, v in buyer_fields.items() if not is_blank(v)}
        data["item_id"] = slot_row.get("item_id")
        data.setdefault("recipient_name", data.get("buyer_name"))
        data["account_normalized"] = normalize_account_number(data.get("account_info"))

        result = self.db.table(self.buyers_table).insert(data).execute()
        if not result.data:
            raise DatabaseError("insert", "Buyer insert returned no data")

        buyer_id = result.data[0]["id"]
        logger.info("buyer_created", slot_id=slot_row.get("id"), buyer_id=buyer_id)
        return buyer_id

    def update_item(self, item_id: int, patch: dict[str, Any]) -> dict:
        """
        Update catalogue-level fields of an item.

        Args:
            item_id: Item ID
            patch: Item fields to write

        Returns:
            Updated item row

        Raises:
            ItemNotFoundError: If the item does not exist
        """
        logger.info("updating_item", item_id=item_id, fields=sorted(patch))

        try:
            result = (
                self.db.table(self.items_table)
                .update(dict(patch))
                .eq("id", item_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_item_failed", item_id=item_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise ItemNotFoundError(item_id)

        return result.data[0]

    # ===================
    # STRUCTURAL
    # ===================

    def delete_slots(self, slot_ids: list[int]) -> dict:
        """
        Delete slots; items left without slots are deleted too.

        Returns:
            {"deleted": n, "deleted_item_ids": [...]}
        """
        if not slot_ids:
            return {"deleted": 0, "deleted_item_ids": []}

        logger.info("deleting_slots", count=len(slot_ids))

        try:
            affected = (
                self.db.table(self.slots_table)
                .select("id, item_id")
                .in_("id", list(slot_ids))
                .execute()
            )
            affected_item_ids = sorted({row["item_id"] for row in affected.data})

            (
                self.db.table(self.slots_table)
                .delete()
                .in_("id", list(slot_ids))
                .execute()
            )

            deleted_item_ids = [
                item_id for item_id in affected_item_ids
                if self._delete_item_if_empty(item_id)
            ]
        except Exception as e:
            logger.error("delete_slots_failed", count=len(slot_ids), error=str(e))
            raise DatabaseError("delete", str(e))

        logger.info(
            "slots_deleted",
            count=len(affected.data),
            deleted_item_ids=deleted_item_ids,
        )
        return {"deleted": len(affected.data), "deleted_item_ids": deleted_item_ids}

    def delete_group(self, item_id: int, day_group: int) -> dict:
        """
        Delete every slot of a day group; the item goes too when it is left empty.

        An already empty group is not an error.

        Returns:
            {"deleted": n, "item_deleted": bool}
        """
        logger.info("deleting_group", item_id=item_id, day_group=day_group)

        try:
            rows = self._group_rows(item_id, day_group)
            if not rows:
                return {"deleted": 0, "item_deleted": False}

            (
                self.db.table(self.slots_table)
                .delete()
                .eq("item_id", item_id)
                .eq("day_group", day_group)
                .execute()
            )
            item_deleted = self._delete_item_if_empty(item_id)
        except Exception as e:
            logger.error("delete_group_failed", item_id=item_id, day_group=day_group, error=str(e))
            raise DatabaseError("delete", str(e))

        logger.info("group_deleted", item_id=item_id, day_group=day_group, count=len(rows))
        return {"deleted": len(rows), "item_deleted": item_deleted}

    def _delete_item_if_empty(self, item_id: int) -> bool:
        remaining = (
            self.db.table(self.slots_table)
            .select("id")
            .eq("item_id", item_id)
            .limit(1)
            .execute()
        )
        if remaining.data:
            return False

        self.db.table(self.items_table).delete().eq("id", item_id).execute()
        logger.info("empty_item_deleted", item_id=item_id)
        return True

    def create_slot(self, item_id: int, day_group: int = 1) -> Slot:
        """
        Append a slot to a day group.

        The new slot gets the next slot number, the group's upload token and
        the group's override fields (taken from its first slot).

        Raises:
            ItemNotFoundError: If the item does not exist
        """
        try:
            item_rows = (
                self.db.table(self.items_table)
                .select("id")
                .eq("id", item_id)
                .execute()
            ).data
            if not item_rows:
                raise ItemNotFoundError(item_id)

            group = self._group_rows(item_id, day_group)
            next_number = max((row.get("slot_number") or 0 for row in group), default=0) + 1

            data: dict[str, Any] = {
                "item_id": item_id,
                "day_group": day_group,
                "slot_number": next_number,
                "status": SlotStatus.ACTIVE,
                "upload_link_token": (group[0].get("upload_link_token") if group else None)
                or str(uuid.uuid4()),
            }
            if group:
                for name in OVERRIDE_FIELDS:
                    if group[0].get(name) is not None:
                        data[name] = group[0][name]

            result = self.db.table(self.slots_table).insert(data).execute()
        except ItemNotFoundError:
            raise
        except Exception as e:
            logger.error("create_slot_failed", item_id=item_id, day_group=day_group, error=str(e))
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", "Slot insert returned no data")

        logger.info(
            "slot_created",
            item_id=item_id,
            day_group=day_group,
            slot_number=next_number,
        )
        return Slot.model_validate(result.data[0])

    def split_group(self, slot_id: int) -> dict:
        """
        Close a day after a slot.

        Slots after ``slot_id`` in the same group move to a new day group
        (max day group of the item + 1) with a fresh upload token.

        Returns:
            {"original_day_group", "new_day_group", "moved_count", "split_after_slot_number"}

        Raises:
            SlotNotFoundError: If the slot does not exist
            GroupSplitError: If no slot follows ``slot_id`` in its group
        """
        target = self._get_slot_row(slot_id)
        item_id = target["item_id"]
        current_group = target.get("day_group") or 1
        split_number = target.get("slot_number") or 0

        try:
            item_rows = (
                self.db.table(self.slots_table)
                .select("id, day_group")
                .eq("item_id", item_id)
                .execute()
            ).data
            max_group = max((row.get("day_group") or 1 for row in item_rows), default=1)

            to_move = [
                row for row in self._group_rows(item_id, current_group)
                if (row.get("slot_number") or 0) > split_number
            ]
        except Exception as e:
            logger.error("split_group_failed", slot_id=slot_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not to_move:
            raise GroupSplitError(slot_id, current_group)

        new_group = max_group + 1
        try:
            (
                self.db.table(self.slots_table)
                .update({"day_group": new_group, "upload_link_token": str(uuid.uuid4())})
                .in_("id", [row["id"] for row in to_move])
                .execute()
            )
        except Exception as e:
            logger.error("split_group_failed", slot_id=slot_id, error=str(e))
            raise DatabaseError("update", str(e))

        logger.info(
            "group_split",
            item_id=item_id,
            original_day_group=current_group,
            new_day_group=new_group,
            moved_count=len(to_move),
        )
        return {
            "original_day_group": current_group,
            "new_day_group": new_group,
            "moved_count": len(to_move),
            "split_after_slot_number": split_number,
        }


# Singleton instance
_gateway: Optional[SlotGateway] = None


def get_slot_gateway() -> SlotGateway:
    """Get or create SlotGateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = SlotGateway()
    return _gateway
