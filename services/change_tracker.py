"""
Change tracker — pending cell edits keyed by the entity they change.

Edits land in one of two maps:
    slot_patches[slot_id]  → slot fields and buyer fields of that slot
    item_patches[item_id]  → item fields

A group-header edit of an override field is written to every slot that is in
the group at the time of the edit (there is no group entity to patch).

Values of numeric fields are reduced to their digits before anything else,
so the pending set, the saved payload and the merged store agree.

Later edits of the same field overwrite earlier ones. An edit whose value
equals the current value (pending, then in-flight, then stored) is a no-op
and does not create or touch a patch.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional
import structlog

from models.sheet import EntityRefs, RowType
from services.column_mapper import field_for, is_editable, normalize_value, owner_of
from services.slot_store import SlotStore
from utils.text_utils import is_blank

logger = structlog.get_logger(__name__)


def same_value(old: Any, new: Any) -> bool:
    """Value equality where None and "" both mean an empty cell."""
    if is_blank(old) and is_blank(new):
        return True
    return old == new


def _unchanged(field_name: str, old: Any, new: Any) -> bool:
    # Stored numbers may still hold the raw text they were imported with
    return same_value(normalize_value(field_name, old), new)


@dataclass
class SlotPatch:
    """Pending fields of one slot, split by owner."""
    slot_id: int
    slot_fields: dict[str, Any] = field(default_factory=dict)
    buyer_fields: dict[str, Any] = field(default_factory=dict)

    def fields(self) -> dict[str, Any]:
        """Flat view of every pending field."""
        return {**self.slot_fields, **self.buyer_fields}

    def payload(self) -> dict[str, Any]:
        """Wire shape for the batch update: {"id": ..., **fields}."""
        return {"id": self.slot_id, **self.slot_fields, **self.buyer_fields}

    def has(self, field_name: str, buyer: bool) -> bool:
        return field_name in (self.buyer_fields if buyer else self.slot_fields)

    def get(self, field_name: str, buyer: bool) -> Any:
        return (self.buyer_fields if buyer else self.slot_fields).get(field_name)

    def set(self, field_name: str, value: Any, buyer: bool) -> None:
        (self.buyer_fields if buyer else self.slot_fields)[field_name] = value

    def copy(self) -> "SlotPatch":
        return SlotPatch(self.slot_id, dict(self.slot_fields), dict(self.buyer_fields))


@dataclass
class PendingChangeSet:
    """Uncommitted edits of one sheet."""
    slot_patches: dict[int, SlotPatch] = field(default_factory=dict)
    item_patches: dict[int, dict[str, Any]] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.slot_patches) + len(self.item_patches)

    @property
    def is_empty(self) -> bool:
        return not self.slot_patches and not self.item_patches

    def slot_payloads(self) -> list[dict[str, Any]]:
        return [patch.payload() for patch in self.slot_patches.values()]

    def merged_under(self, newer: "PendingChangeSet") -> "PendingChangeSet":
        """
        Combine with a newer set; the newer value wins field by field.

        Used to put failed in-flight patches back without clobbering edits
        made while the commit was running.
        """
        result = PendingChangeSet(
            slot_patches={slot_id: patch.copy() for slot_id, patch in self.slot_patches.items()},
            item_patches={item_id: dict(fields) for item_id, fields in self.item_patches.items()},
        )
        for slot_id, patch in newer.slot_patches.items():
            target = result.slot_patches.setdefault(slot_id, SlotPatch(slot_id))
            target.slot_fields.update(patch.slot_fields)
            target.buyer_fields.update(patch.buyer_fields)
        for item_id, fields in newer.item_patches.items():
            result.item_patches.setdefault(item_id, {}).update(fields)
        return result


class ChangeTracker:
    """
    Accumulates edits for one sheet.

    Reads the slot store to resolve previous values and group membership,
    never writes to it.
    """

    def __init__(
        self,
        store: SlotStore,
        on_change_count_changed: Optional[Callable[[int], None]] = None,
    ):
        self.store = store
        self.pending = PendingChangeSet()
        self._in_flight: Optional[PendingChangeSet] = None
        self._on_change_count_changed = on_change_count_changed
        self._last_count = 0

    @property
    def change_count(self) -> int:
        return self.pending.count

    @property
    def in_flight(self) -> Optional[PendingChangeSet]:
        return self._in_flight

    # ===================
    # RECORDING
    # ===================

    def record_cell(self, row, column_index: int, new_value: Any) -> bool:
        """
        Record an edit addressed by grid position.

        Args:
            row: Display row the cell belongs to
            column_index: Grid column
            new_value: Value typed by the user

        Returns:
            True if the pending set changed
        """
        if not is_editable(row.row_type, column_index):
            logger.debug(
                "edit_ignored_not_editable",
                row_type=RowType(row.row_type).value,
                column_index=column_index,
            )
            return False
        field_name = field_for(row.row_type, column_index)
        return self.record(row.row_type, row.refs, field_name, new_value)

    def record(
        self,
        row_type: RowType,
        refs: EntityRefs,
        field_name: str,
        new_value: Any,
    ) -> bool:
        """
        Record one field edit.

        Edits that cannot be resolved to an entity (separators, banners,
        unmapped fields, unknown IDs) are ignored, not raised: the grid fires
        change events for any visible cell.

        Returns:
            True if the pending set changed
        """
        owner = owner_of(row_type, field_name) if field_name else None
        if owner is not None:
            new_value = normalize_value(field_name, new_value)

        if owner == "item":
            changed = self._record_item(refs.item_id, field_name, new_value)
        elif owner == "group":
            changed = self._record_group(refs.item_id, refs.day_group, field_name, new_value)
        elif owner in ("slot", "buyer"):
            changed = self._record_slot(refs.slot_id, field_name, new_value, buyer=(owner == "buyer"))
        else:
            logger.debug(
                "edit_ignored_unmapped",
                row_type=RowType(row_type).value,
                field=field_name,
            )
            return False

        if changed:
            self._notify()
        return changed

    def _record_item(self, item_id: Optional[int], field_name: str, new_value: Any) -> bool:
        if item_id is None or self.store.get_item(item_id) is None:
            logger.debug("edit_ignored_unknown_item", item_id=item_id, field=field_name)
            return False

        if _unchanged(field_name, self._previous_item_value(item_id, field_name), new_value):
            return False

        self.pending.item_patches.setdefault(item_id, {})[field_name] = new_value
        return True

    def _record_group(
        self,
        item_id: Optional[int],
        day_group: Optional[int],
        field_name: str,
        new_value: Any,
    ) -> bool:
        if item_id is None or day_group is None:
            return False

        members = self.store.slots_in_group(item_id, day_group)
        if not members:
            logger.debug("edit_ignored_empty_group", item_id=item_id, day_group=day_group)
            return False

        # The header shows the first slot's value, or the item's when that is blank
        shown = self._previous_slot_value(members[0].id, field_name, False)
        if is_blank(shown):
            shown = self._previous_item_value(item_id, field_name)
        if _unchanged(field_name, shown, new_value):
            return False

        for slot in members:
            patch = self.pending.slot_patches.setdefault(slot.id, SlotPatch(slot.id))
            patch.set(field_name, new_value, buyer=False)

        logger.debug(
            "group_edit_fanned_out",
            item_id=item_id,
            day_group=day_group,
            field=field_name,
            slot_count=len(members),
        )
        return True

    def _record_slot(self, slot_id: Optional[int], field_name: str, new_value: Any, buyer: bool) -> bool:
        if slot_id is None or self.store.get_slot(slot_id) is None:
            logger.debug("edit_ignored_unknown_slot", slot_id=slot_id, field=field_name)
            return False

        if _unchanged(field_name, self._previous_slot_value(slot_id, field_name, buyer), new_value):
            return False

        patch = self.pending.slot_patches.setdefault(slot_id, SlotPatch(slot_id))
        patch.set(field_name, new_value, buyer=buyer)
        return True

    def _previous_slot_value(self, slot_id: int, field_name: str, buyer: bool) -> Any:
        for change_set in (self.pending, self._in_flight):
            if change_set is None:
                continue
            patch = change_set.slot_patches.get(slot_id)
            if patch is not None and patch.has(field_name, buyer):
                return patch.get(field_name, buyer)
        return self.store.slot_value(slot_id, field_name, buyer_field=buyer)

    def _previous_item_value(self, item_id: int, field_name: str) -> Any:
        for change_set in (self.pending, self._in_flight):
            if change_set is None:
                continue
            fields = change_set.item_patches.get(item_id)
            if fields is not None and field_name in fields:
                return fields[field_name]
        return self.store.item_value(item_id, field_name)

    # ===================
    # COMMIT HAND-OFF
    # ===================

    def detach(self) -> PendingChangeSet:
        """
        Hand the pending set to a commit and start a fresh one.

        Edits recorded until settle() go to the fresh set.
        """
        detached = self.pending
        self._in_flight = detached
        self.pending = PendingChangeSet()
        self._notify()
        return detached

    def settle(self, remaining: PendingChangeSet) -> None:
        """
        Finish a commit: put back what the backend did not accept.

        Newer edits made during the commit win over restored ones.
        """
        self._in_flight = None
        if not remaining.is_empty:
            self.pending = remaining.merged_under(self.pending)
        self._notify()

    def clear(self) -> None:
        """Drop every pending edit (reload)."""
        self.pending = PendingChangeSet()
        self._in_flight = None
        self._notify()

    def _notify(self) -> None:
        count = self.pending.count
        if count == self._last_count:
            return
        self._last_count = count
        if self._on_change_count_changed is not None:
            self._on_change_count_changed(count)
