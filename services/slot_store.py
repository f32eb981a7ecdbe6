"""
Slot store — the in-memory slots and items of one campaign sheet.

Holds the authoritative list of slots as loaded from the backend, in load
order, plus the campaign's items keyed by ID. Only two things write to it:
a reload (replace) and the commit coordinator merging accepted patches.
Everything else reads snapshots.
"""

from typing import Any, Iterable, Optional
import structlog

from models.slot import Buyer, Item, Slot

logger = structlog.get_logger(__name__)


class SlotStore:
    """
    In-memory slots and items for one campaign.

    Slots are kept in load order; that order is the tie-breaker when rows are
    projected. Records are replaced, never mutated in place, so a snapshot
    taken before a merge stays valid.
    """

    def __init__(self, campaign_id: int):
        self.campaign_id = campaign_id
        self._slots: list[Slot] = []
        self._positions: dict[int, int] = {}
        self._items: dict[int, Item] = {}
        self.version = 0
        self.loaded = False

    # ===================
    # READS
    # ===================

    @property
    def slots(self) -> tuple[Slot, ...]:
        """Snapshot of all slots in load order."""
        return tuple(self._slots)

    @property
    def items(self) -> dict[int, Item]:
        """Snapshot of the item map."""
        return dict(self._items)

    def __len__(self) -> int:
        return len(self._slots)

    def get_slot(self, slot_id: int) -> Optional[Slot]:
        position = self._positions.get(slot_id)
        return self._slots[position] if position is not None else None

    def get_item(self, item_id: int) -> Optional[Item]:
        return self._items.get(item_id)

    def slots_in_group(self, item_id: int, day_group: int) -> list[Slot]:
        """Slots of one (item, day group), in load order."""
        return [
            slot for slot in self._slots
            if slot.item_id == item_id and slot.day_group == day_group
        ]

    def slot_value(self, slot_id: int, field_name: str, buyer_field: bool = False) -> Any:
        """
        Current stored value of a slot or buyer field.

        Returns None when the slot, the buyer or the field does not exist.
        """
        slot = self.get_slot(slot_id)
        if slot is None:
            return None
        if buyer_field:
            return getattr(slot.buyer, field_name, None) if slot.buyer else None
        return getattr(slot, field_name, None)

    def item_value(self, item_id: int, field_name: str) -> Any:
        item = self._items.get(item_id)
        return getattr(item, field_name, None) if item else None

    # ===================
    # WRITES
    # ===================

    def replace(self, slots: Iterable[Slot], items: Iterable[Item]) -> None:
        """
        Replace the whole store with freshly loaded records.

        Args:
            slots: Slots in backend order
            items: Campaign items
        """
        self._slots = list(slots)
        self._positions = {slot.id: index for index, slot in enumerate(self._slots)}
        self._items = {item.id: item for item in items}
        self.loaded = True
        self.version += 1

        logger.info(
            "slot_store_replaced",
            campaign_id=self.campaign_id,
            slot_count=len(self._slots),
            item_count=len(self._items),
            version=self.version,
        )

    def merge_slot_patch(
        self,
        slot_id: int,
        slot_fields: dict[str, Any],
        buyer_fields: dict[str, Any],
    ) -> bool:
        """
        Shallow-merge accepted fields into a slot and its buyer.

        Fields not in the patch are kept. A slot without a buyer gets a new
        buyer record (id unknown until the next reload) when buyer fields are
        present.

        Returns:
            False if the slot is no longer in the store
        """
        position = self._positions.get(slot_id)
        if position is None:
            logger.warning("merge_slot_missing", campaign_id=self.campaign_id, slot_id=slot_id)
            return False

        slot = self._slots[position]
        update = dict(slot_fields)

        if buyer_fields:
            if slot.buyer is not None:
                update["buyer"] = slot.buyer.model_copy(update=buyer_fields)
            else:
                update["buyer"] = Buyer.model_validate(buyer_fields)

        self._slots[position] = slot.model_copy(update=update)
        self.version += 1
        return True

    def merge_item_patch(self, item_id: int, fields: dict[str, Any]) -> bool:
        """
        Shallow-merge accepted fields into an item.

        Returns:
            False if the item is not in the store
        """
        item = self._items.get(item_id)
        if item is None:
            logger.warning("merge_item_missing", campaign_id=self.campaign_id, item_id=item_id)
            return False

        self._items[item_id] = item.model_copy(update=fields)
        self.version += 1
        return True
