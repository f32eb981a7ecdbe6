"""
In-memory test doubles.
"""

import threading
from typing import Optional

from exceptions import DatabaseError, GroupSplitError, ItemNotFoundError, SlotNotFoundError
from models.slot import Item, Slot


class FakeSlotGateway:
    """
    In-memory stand-in for SlotGateway.

    Records every call in ``calls`` (in order). Set ``fail_slots`` or add IDs
    to ``fail_items`` to make updates raise. Patches for slots or items it
    does not hold are skipped, like the real gateway. Call ``hold()`` to make
    the next slot batch block until ``release()``.
    """

    def __init__(self, items: list[Item], slots: list[Slot]):
        self.items = list(items)
        self.slots = list(slots)
        self.calls: list[tuple] = []
        self.fail_slots = False
        self.fail_items: set[int] = set()
        self.slot_batches: list[list[dict]] = []
        self.item_updates: list[tuple[int, dict]] = []
        self._gate: Optional[threading.Event] = None
        self.entered = threading.Event()

    def hold(self) -> None:
        self._gate = threading.Event()
        self.entered.clear()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    def fetch_items(self, campaign_id: int) -> list[Item]:
        self.calls.append(("fetch_items", campaign_id))
        return [item for item in self.items if item.campaign_id in (None, campaign_id)]

    def fetch_items_by_ids(self, item_ids: list[int]) -> list[Item]:
        self.calls.append(("fetch_items_by_ids", tuple(item_ids)))
        return [item for item in self.items if item.id in item_ids]

    def fetch_slots(self, campaign_id: int, item_ids: Optional[list[int]] = None) -> list[Slot]:
        self.calls.append(("fetch_slots", campaign_id))
        return list(self.slots)

    def update_slots_batch(self, patches: list[dict]) -> dict:
        self.calls.append(("update_slots_batch", len(patches)))
        if self._gate is not None:
            self.entered.set()
            self._gate.wait(timeout=5)
            self._gate = None
        if self.fail_slots:
            raise DatabaseError("update", "slot batch rejected")
        known = {s.id for s in self.slots}
        self.slot_batches.append([dict(p) for p in patches])
        return {
            "updated": [p["id"] for p in patches if p["id"] in known],
            "skipped": [p["id"] for p in patches if p["id"] not in known],
        }

    def update_item(self, item_id: int, patch: dict) -> dict:
        self.calls.append(("update_item", item_id))
        if item_id in self.fail_items:
            raise DatabaseError("update", f"item {item_id} rejected")
        if all(item.id != item_id for item in self.items):
            raise ItemNotFoundError(item_id)
        self.item_updates.append((item_id, dict(patch)))
        return {"id": item_id, **patch}

    def delete_slots(self, slot_ids: list[int]) -> dict:
        self.calls.append(("delete_slots", tuple(slot_ids)))
        before = len(self.slots)
        self.slots = [s for s in self.slots if s.id not in slot_ids]
        return {"deleted": before - len(self.slots), "deleted_item_ids": []}

    def delete_group(self, item_id: int, day_group: int) -> dict:
        self.calls.append(("delete_group", item_id, day_group))
        before = len(self.slots)
        self.slots = [s for s in self.slots if s.group_key != (item_id, day_group)]
        return {"deleted": before - len(self.slots), "item_deleted": False}

    def create_slot(self, item_id: int, day_group: int = 1) -> Slot:
        self.calls.append(("create_slot", item_id, day_group))
        slot = Slot(id=max((s.id for s in self.slots), default=0) + 1, item_id=item_id, day_group=day_group)
        self.slots.append(slot)
        return slot

    def split_group(self, slot_id: int) -> dict:
        self.calls.append(("split_group", slot_id))
        target = next((s for s in self.slots if s.id == slot_id), None)
        if target is None:
            raise SlotNotFoundError(slot_id)
        group = [s for s in self.slots if s.group_key == target.group_key]
        after = group[group.index(target) + 1:]
        if not after:
            raise GroupSplitError(slot_id, target.day_group)
        new_group = max(s.day_group for s in self.slots if s.item_id == target.item_id) + 1
        moved = {s.id for s in after}
        self.slots = [
            s.model_copy(update={"day_group": new_group}) if s.id in moved else s
            for s in self.slots
        ]
        return {
            "original_day_group": target.day_group,
            "new_day_group": new_group,
            "moved_count": len(after),
            "split_after_slot_number": target.slot_number,
        }

