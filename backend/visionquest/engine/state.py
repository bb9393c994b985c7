# backend/visionquest/engine/state.py
"""
In-memory state for one user's quest journal.

Quests and storylines are frozen dataclasses holding tuples, so every change
goes through the tree codec and produces new objects along the changed path.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Simple type aliases for clarity
StorylineId = str
QuestId = str
ItemId = str
SlotId = str
UserId = str


class Rarity(Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


@dataclass(frozen=True)
class Quest:
    id: QuestId
    title: str
    completed: bool = False
    parent_id: QuestId | None = None
    position: int = 0
    subquests: tuple["Quest", ...] = ()
    created_at: datetime | None = None


@dataclass(frozen=True)
class Storyline:
    id: StorylineId
    title: str
    created_at: datetime | None = None
    quests: tuple[Quest, ...] = ()


@dataclass
class ProgressionState:
    """Experience and level. Level threshold is level * XP_PER_LEVEL."""
    xp: int = 0
    level: int = 1


@dataclass(frozen=True)
class Item:
    id: ItemId
    name: str
    rarity: Rarity = Rarity.COMMON
    image_ref: str | None = None


@dataclass
class InventorySlot:
    id: SlotId
    item_id: ItemId
    quantity: int = 1


@dataclass(frozen=True)
class DeletedQuestRecord:
    """Undo entry. Only the deleted node itself is kept, never its subtree."""
    title: str
    completed: bool
    storyline_id: StorylineId
    parent_id: QuestId | None = None


@dataclass
class UserState:
    """Everything loaded for one user at startup."""
    user_id: UserId
    storylines: list[Storyline] = field(default_factory=list)
    progression: ProgressionState = field(default_factory=ProgressionState)
    catalog: list[Item] = field(default_factory=list)
    inventory: list[InventorySlot] = field(default_factory=list)
