"""
Unit tests for random item rewards and inventory stacking.
"""

import random

import pytest

from visionquest.engine.state import InventorySlot, Item
from visionquest.engine.systems import EntityKind, FailureKind, RewardEngine


class FixedChoice:
    """rng stand-in whose choice() always returns the element at ``index``."""

    def __init__(self, index: int = 0):
        self.index = index

    def choice(self, seq):
        return seq[self.index]


@pytest.mark.unit
async def test_award_from_empty_catalog_returns_none():
    rewards = RewardEngine([])
    assert await rewards.award_random_item() is None
    assert rewards.inventory == ()


@pytest.mark.unit
async def test_award_adds_new_slot(catalog):
    rewards = RewardEngine(catalog, rng=FixedChoice(2))

    item = await rewards.award_random_item()

    assert item.id == "item_moonstone"
    assert rewards.quantity_of("item_moonstone") == 1


@pytest.mark.unit
async def test_same_item_twice_stacks(catalog):
    rewards = RewardEngine(catalog, rng=FixedChoice(0))

    await rewards.award_random_item()
    await rewards.award_random_item()

    assert len(rewards.inventory) == 1
    assert rewards.quantity_of("item_journal") == 2


@pytest.mark.unit
async def test_seeded_rng_is_reproducible(catalog):
    first = RewardEngine(catalog, rng=random.Random(42))
    second = RewardEngine(catalog, rng=random.Random(42))

    drops_a = [(await first.award_random_item()).id for _ in range(5)]
    drops_b = [(await second.award_random_item()).id for _ in range(5)]

    assert drops_a == drops_b


@pytest.mark.unit
def test_duplicate_inventory_rows_are_merged(catalog):
    rewards = RewardEngine(
        catalog,
        inventory=[
            InventorySlot(id="s1", item_id="item_quill", quantity=2),
            InventorySlot(id="s2", item_id="item_quill", quantity=3),
        ],
    )
    assert rewards.quantity_of("item_quill") == 5
    assert [slot.id for slot in rewards.inventory] == ["s1"]


@pytest.mark.unit
def test_inventory_view_skips_unknown_items(catalog):
    rewards = RewardEngine(
        catalog,
        inventory=[
            InventorySlot(id="s1", item_id="item_compass", quantity=1),
            InventorySlot(id="s2", item_id="item_retired", quantity=1),
        ],
    )

    view = rewards.inventory_view()

    assert [(e.slot_id, e.item.name, e.quantity) for e in view] == [("s1", "Silver Compass", 1)]


@pytest.mark.unit
async def test_new_slot_gets_server_id(recording_remote):
    rewards = RewardEngine([Item(id="item_a", name="A")], remote=recording_remote)

    slot = await rewards.grant_item("item_a")

    assert slot.id == "inventory-1"
    [call] = recording_remote.calls_for("create", EntityKind.INVENTORY)
    assert call[2] == {"item_id": "item_a", "quantity": 1}


@pytest.mark.unit
async def test_stacking_updates_quantity(recording_remote):
    rewards = RewardEngine(
        [Item(id="item_a", name="A")],
        inventory=[InventorySlot(id="slot-9", item_id="item_a", quantity=1)],
        remote=recording_remote,
    )

    await rewards.grant_item("item_a")

    assert recording_remote.calls_for("update", EntityKind.INVENTORY) == [
        ("update", EntityKind.INVENTORY, "slot-9", {"quantity": 2})
    ]


@pytest.mark.unit
async def test_failed_slot_create_keeps_local_slot(recording_remote):
    recording_remote.fail("create", FailureKind.NETWORK_ERROR)
    rewards = RewardEngine([Item(id="item_a", name="A")], remote=recording_remote)

    slot = await rewards.grant_item("item_a")

    assert slot.id.startswith("pending-slot-")
    assert rewards.quantity_of("item_a") == 1


@pytest.mark.unit
async def test_pending_slot_ids_are_numbered_per_engine():
    first = RewardEngine([Item(id="item_a", name="A")])
    second = RewardEngine([Item(id="item_a", name="A")])

    first_slot = await first.grant_item("item_a")
    second_slot = await second.grant_item("item_a")

    assert first_slot.id == "pending-slot-1"
    assert second_slot.id == "pending-slot-1"
