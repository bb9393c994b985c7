# backend/visionquest/engine/systems/rewards.py
"""
RewardEngine - random item drops and inventory stacking.

Every level-up draws one item uniformly from the whole catalog (rarity does
not weight the draw). A drop of an item already held increments that slot's
quantity; otherwise a new slot with quantity 1 is created.
"""

from __future__ import annotations

import itertools
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from ..state import InventorySlot, Item
from .remote import EntityKind

if TYPE_CHECKING:
    from ..state import ItemId
    from .remote import RemoteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InventoryEntry:
    """A slot paired with its catalog item, for display."""
    slot_id: str
    item: Item
    quantity: int


class RewardEngine:
    """
    Owns the item catalog and the user's inventory.

    Usage:
        rewards = RewardEngine(catalog, inventory, remote)
        item = await rewards.award_random_item()
    """

    def __init__(
        self,
        catalog: Iterable[Item],
        inventory: Iterable[InventorySlot] = (),
        remote: "RemoteStore | None" = None,
        rng: random.Random | None = None,
    ) -> None:
        self.catalog: dict["ItemId", Item] = {item.id: item for item in catalog}
        self._placeholders = itertools.count(1)
        self._slots: dict["ItemId", InventorySlot] = {}
        for slot in inventory:
            # Merge duplicate rows for the same item into one slot
            existing = self._slots.get(slot.item_id)
            if existing is not None:
                existing.quantity += slot.quantity
            else:
                self._slots[slot.item_id] = InventorySlot(slot.id, slot.item_id, slot.quantity)
        self.remote = remote
        self.rng = rng or random.Random()

    @property
    def inventory(self) -> tuple[InventorySlot, ...]:
        return tuple(self._slots.values())

    def inventory_view(self) -> list[InventoryEntry]:
        """Slots joined with their items; slots for unknown items are skipped."""
        entries = []
        for slot in self._slots.values():
            item = self.catalog.get(slot.item_id)
            if item is None:
                logger.warning("Inventory slot %s references unknown item %s", slot.id, slot.item_id)
                continue
            entries.append(InventoryEntry(slot_id=slot.id, item=item, quantity=slot.quantity))
        return entries

    def quantity_of(self, item_id: "ItemId") -> int:
        slot = self._slots.get(item_id)
        return slot.quantity if slot else 0

    async def award_random_item(self) -> Item | None:
        """Pick one catalog item uniformly and add it to the inventory."""
        if not self.catalog:
            logger.warning("Item catalog is empty; no reward granted")
            return None

        item = self.rng.choice(list(self.catalog.values()))
        await self.grant_item(item.id)
        logger.info("Reward dropped: %s (%s)", item.name, item.rarity.value)
        return item

    async def grant_item(self, item_id: "ItemId") -> InventorySlot:
        """Stack onto the existing slot or open a new one."""
        slot = self._slots.get(item_id)
        if slot is not None:
            slot.quantity += 1
            await self._persist_quantity(slot)
            return slot

        slot = InventorySlot(id=f"pending-slot-{next(self._placeholders)}", item_id=item_id, quantity=1)
        self._slots[item_id] = slot
        await self._persist_new_slot(slot)
        return slot

    async def _persist_new_slot(self, slot: InventorySlot) -> None:
        if self.remote is None:
            return
        placeholder = slot.id
        result = await self.remote.create(
            EntityKind.INVENTORY, {"item_id": slot.item_id, "quantity": slot.quantity}
        )
        if not result.ok:
            logger.warning("Could not store inventory slot for %s: %s", slot.item_id, result.detail)
            return
        # The slot may have stacked further while the create was in flight
        if slot.id == placeholder:
            slot.id = result.fields["id"]
        if slot.quantity != 1:
            await self._persist_quantity(slot)

    async def _persist_quantity(self, slot: InventorySlot) -> None:
        if self.remote is None or slot.id.startswith("pending-"):
            # Pending creates push the final quantity once the id arrives
            return
        result = await self.remote.update(EntityKind.INVENTORY, slot.id, {"quantity": slot.quantity})
        if not result.ok:
            logger.warning("Could not store quantity for slot %s: %s", slot.id, result.detail)
