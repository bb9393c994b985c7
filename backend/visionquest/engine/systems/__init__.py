# backend/visionquest/engine/systems/__init__.py
"""
Quest journal systems.

Each system handles one concern:
- tree: Pure copy-on-write functions over quest forests
- RemoteStore / SqlRemoteStore: Persistence with typed failures
- QuestTreeStore: Optimistic storyline/quest mutations
- UndoStack: History of deleted quests
- ProgressionEngine: Experience and level state machine
- RewardEngine: Random item drops and inventory stacking
"""

# Import tree first (no dependencies)
from . import tree

from .remote import (
    EntityKind,
    FailureKind,
    RemoteStore,
    SqlRemoteStore,
    StoreFailure,
    StoreResult,
    StoreSuccess,
)
from .undo import UndoStack
from .rewards import InventoryEntry, RewardEngine
from .progression import ProgressionEngine, ProgressionResult, apply_xp
from .quests import OperationOutcome, QuestTreeStore

__all__ = [
    "tree",
    "EntityKind",
    "FailureKind",
    "RemoteStore",
    "SqlRemoteStore",
    "StoreFailure",
    "StoreResult",
    "StoreSuccess",
    "UndoStack",
    "InventoryEntry",
    "RewardEngine",
    "ProgressionEngine",
    "ProgressionResult",
    "apply_xp",
    "OperationOutcome",
    "QuestTreeStore",
]
