# backend/visionquest/engine/systems/undo.py
"""
UndoStack - LIFO history of deleted quests.

Owned by the per-user core and handed to the quest store; there is no
module-level history. Records hold only the deleted node itself, so undo
brings back a childless quest.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..state import DeletedQuestRecord


class UndoStack:
    def __init__(self, limit: int | None = None) -> None:
        # deque drops the oldest record once the limit is reached
        self._records: deque["DeletedQuestRecord"] = deque(maxlen=limit)

    def push_deleted(self, record: "DeletedQuestRecord") -> None:
        self._records.append(record)

    def pop_last(self) -> "DeletedQuestRecord | None":
        if not self._records:
            return None
        return self._records.pop()

    def peek(self) -> "DeletedQuestRecord | None":
        return self._records[-1] if self._records else None

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
