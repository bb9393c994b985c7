# backend/visionquest/engine/systems/quests.py
"""
QuestTreeStore - owns a user's storylines and their quest forests.

Every mutation follows the same protocol:
1. Apply the change to memory through the tree codec (visible immediately).
2. Await the matching RemoteStore call.
3. On success merge server-assigned fields; new quests and storylines carry a
   ``pending-N`` placeholder id until the server id arrives.
4. On failure log it and keep the optimistic state. Nothing is rolled back.

Local lookups of unknown storylines or quests raise NotFoundError. Remote
failures never raise; they come back in the OperationOutcome.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Iterable

from ... import config
from ...errors import NotFoundError
from ..state import DeletedQuestRecord, Quest, Storyline
from . import tree
from .remote import EntityKind, FailureKind, StoreFailure

if TYPE_CHECKING:
    from ..state import QuestId, StorylineId
    from .progression import ProgressionEngine, ProgressionResult
    from .remote import RemoteStore
    from .undo import UndoStack

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "pending-"


def is_placeholder(entity_id: str | None) -> bool:
    return entity_id is not None and entity_id.startswith(PLACEHOLDER_PREFIX)


def clean_title(title: str) -> str:
    title = (title or "").strip()
    if not title:
        raise ValueError("Title cannot be empty")
    return title


@dataclass(frozen=True)
class OperationOutcome:
    """Result of a store operation: the resulting value plus any remote failure."""
    value: Any = None
    failure: StoreFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class QuestTreeStore:
    """
    Usage:
        store = QuestTreeStore(storylines, remote=remote, progression=progression, undo=undo)
        outcome = await store.add_quest(storyline_id, "Run 5k")
        await store.complete_quest(storyline_id, outcome.value.id, True)
    """

    def __init__(
        self,
        storylines: Iterable[Storyline] = (),
        *,
        remote: "RemoteStore | None" = None,
        progression: "ProgressionEngine | None" = None,
        undo: "UndoStack | None" = None,
        quest_xp: int = config.QUEST_XP,
    ) -> None:
        self._storylines: dict["StorylineId", Storyline] = {s.id: s for s in storylines}
        self.remote = remote
        self.progression = progression
        self.undo = undo
        self.quest_xp = quest_xp

        self.active_storyline_id: "StorylineId | None" = None

        # Flipped off when the store reports it cannot hold sibling order
        self.ordering_persisted = True

        # placeholder id -> server id, so stale placeholder references still resolve
        self._resolved: dict[str, str] = {}
        self._placeholders = itertools.count(1)

        # placeholder id -> future of the server id, set once its create settles
        self._creates: dict[str, asyncio.Future] = {}

    # ---------- Read-only snapshots ----------

    @property
    def storylines(self) -> tuple[Storyline, ...]:
        return tuple(self._storylines.values())

    def get_storyline(self, storyline_id: "StorylineId") -> Storyline:
        storyline = self._storylines.get(self._resolve(storyline_id))
        if storyline is None:
            raise NotFoundError("Storyline", storyline_id)
        return storyline

    def get_quest(self, storyline_id: "StorylineId", quest_id: "QuestId") -> Quest:
        storyline = self.get_storyline(storyline_id)
        quest = tree.find_node(storyline.quests, self._resolve(quest_id))
        if quest is None:
            raise NotFoundError("Quest", quest_id)
        return quest

    def storyline_progress(self, storyline_id: "StorylineId") -> tuple[int, int]:
        """(completed, total) over the storyline's root quests."""
        quests = self.get_storyline(storyline_id).quests
        return sum(1 for q in quests if q.completed), len(quests)

    # ---------- Storylines ----------

    async def add_storyline(self, title: str) -> OperationOutcome:
        title = clean_title(title)
        placeholder = self._next_placeholder()
        self._storylines[placeholder] = Storyline(id=placeholder, title=title)

        if self.remote is None:
            return OperationOutcome(self._storylines[placeholder])

        created = self._track_create(placeholder)
        server_id = None
        try:
            result = await self.remote.create(EntityKind.STORYLINE, {"title": title})
            if not result.ok:
                self._log_failure("add storyline", result)
                return OperationOutcome(self._storylines.get(placeholder), result)

            self._resolved[placeholder] = result.fields["id"]
            if placeholder not in self._storylines:
                # Deleted while the create was in flight
                logger.debug("Storyline %s deleted before creation finished", placeholder)
                await self._remote_call(
                    "delete storyline", self.remote.delete(EntityKind.STORYLINE, result.fields["id"])
                )
                return OperationOutcome(None)

            server_id = result.fields["id"]
            # Rename in place so storyline order is kept
            self._storylines = {
                (server_id if key == placeholder else key): (
                    replace(value, id=server_id, created_at=result.fields.get("created_at"))
                    if key == placeholder else value
                )
                for key, value in self._storylines.items()
            }
            if self.active_storyline_id == placeholder:
                self.active_storyline_id = server_id
            return OperationOutcome(self._storylines[server_id])
        finally:
            # Quests added meanwhile are waiting for this id
            created.set_result(server_id)

    async def delete_storyline(self, storyline_id: "StorylineId") -> OperationOutcome:
        storyline = self.get_storyline(storyline_id)
        del self._storylines[storyline.id]
        if self.active_storyline_id == storyline.id:
            self.active_storyline_id = None

        failure = None
        if self.remote is not None and not is_placeholder(storyline.id):
            failure = await self._remote_call(
                "delete storyline", self.remote.delete(EntityKind.STORYLINE, storyline.id)
            )
        return OperationOutcome(storyline, failure)

    def set_active_storyline(self, storyline_id: "StorylineId | None") -> None:
        if storyline_id is None:
            self.active_storyline_id = None
            return
        self.active_storyline_id = self.get_storyline(storyline_id).id

    # ---------- Quests ----------

    async def add_quest(
        self,
        storyline_id: "StorylineId",
        title: str,
        parent_quest_id: "QuestId | None" = None,
    ) -> OperationOutcome:
        """Append a new, uncompleted quest after its existing siblings."""
        title = clean_title(title)
        storyline = self.get_storyline(storyline_id)
        parent_id = self._resolve(parent_quest_id)

        quest = Quest(
            id=self._next_placeholder(),
            title=title,
            completed=False,
            parent_id=parent_id,
            position=len(self._siblings(storyline, parent_id)),
        )
        self._insert(storyline, quest)
        return await self._create_remote(storyline.id, quest)

    async def update_quest(
        self,
        storyline_id: "StorylineId",
        quest_id: "QuestId",
        new_title: str,
    ) -> OperationOutcome:
        """Rename a quest. Renaming to the current title does nothing."""
        new_title = clean_title(new_title)
        storyline = self.get_storyline(storyline_id)
        quest = self.get_quest(storyline.id, quest_id)
        if quest.title == new_title:
            logger.debug("Quest %s already titled %r", quest.id, new_title)
            return OperationOutcome(quest)

        self._set_forest(storyline.id, tree.update_node(storyline.quests, quest.id, title=new_title))

        failure = await self._push_patch(quest.id, {"title": new_title}, "rename quest")
        return OperationOutcome(self._current(storyline.id, quest.id), failure)

    async def complete_quest(
        self,
        storyline_id: "StorylineId",
        quest_id: "QuestId",
        is_completed: bool,
    ) -> OperationOutcome:
        """
        Set a quest's completed flag and adjust experience.

        false -> true awards QUEST_XP, true -> false takes it back. Setting the
        flag it already has changes nothing. The outcome value is the
        ProgressionResult, or None when no xp changed.
        """
        storyline = self.get_storyline(storyline_id)
        quest = self.get_quest(storyline.id, quest_id)
        is_completed = bool(is_completed)
        if quest.completed == is_completed:
            return OperationOutcome(None)

        self._set_forest(
            storyline.id, tree.update_node(storyline.quests, quest.id, completed=is_completed)
        )

        progression_result: "ProgressionResult | None" = None
        if self.progression is not None:
            delta = self.quest_xp if is_completed else -self.quest_xp
            progression_result = await self.progression.add_xp(delta)

        failure = await self._push_patch(quest.id, {"completed": is_completed}, "complete quest")
        return OperationOutcome(progression_result, failure)

    async def delete_quest(self, storyline_id: "StorylineId", quest_id: "QuestId") -> OperationOutcome:
        """Remove a quest with its whole subtree, remembering the node for undo."""
        storyline = self.get_storyline(storyline_id)
        quest = self.get_quest(storyline.id, quest_id)

        record = DeletedQuestRecord(
            title=quest.title,
            completed=quest.completed,
            storyline_id=storyline.id,
            parent_id=quest.parent_id,
        )
        if self.undo is not None:
            self.undo.push_deleted(record)

        self._set_forest(storyline.id, tree.remove_node(storyline.quests, quest.id))

        failure = None
        if self.remote is not None and not is_placeholder(quest.id):
            failure = await self._remote_call(
                "delete quest", self.remote.delete(EntityKind.QUEST, quest.id)
            )
        return OperationOutcome(record, failure)

    async def reorder_quests(
        self,
        storyline_id: "StorylineId",
        new_order: Iterable["QuestId | Quest"],
    ) -> OperationOutcome:
        """
        Reorder the storyline's root quests. Nested quests cannot be reordered.

        A store without a position column keeps the order for this session only;
        that is not reported as a failure.
        """
        storyline = self.get_storyline(storyline_id)
        ordered_ids = [
            self._resolve(entry.id if isinstance(entry, Quest) else entry) for entry in new_order
        ]
        forest = tree.reorder_roots(storyline.quests, ordered_ids)
        self._set_forest(storyline.id, forest)

        if self.remote is None or not self.ordering_persisted:
            return OperationOutcome(forest)

        entries = [(quest.id, quest.position) for quest in forest if not is_placeholder(quest.id)]
        result = await self.remote.bulk_reposition(entries)
        if result.ok:
            return OperationOutcome(forest)
        if result.kind is FailureKind.SCHEMA_ERROR:
            self.ordering_persisted = False
            logger.info("Quest order cannot be stored (%s); keeping it for this session", result.detail)
            return OperationOutcome(forest)

        self._log_failure("reorder quests", result)
        return OperationOutcome(forest, result)

    # ---------- Undo ----------

    async def undo_delete(self) -> OperationOutcome:
        """
        Restore the most recently deleted quest as a new childless quest under
        its old parent. Its former subquests are not restored.
        """
        if self.undo is None:
            return OperationOutcome(None)
        record = self.undo.pop_last()
        if record is None:
            logger.debug("Undo requested with empty history")
            return OperationOutcome(None)

        storyline = self._storylines.get(self._resolve(record.storyline_id))
        if storyline is None:
            logger.info("Dropping undo of %r: storyline %s is gone", record.title, record.storyline_id)
            return OperationOutcome(None)

        parent_id = self._resolve(record.parent_id)
        if parent_id is not None and tree.find_node(storyline.quests, parent_id) is None:
            logger.info("Parent of %r no longer exists; restoring at root", record.title)
            parent_id = None

        quest = Quest(
            id=self._next_placeholder(),
            title=record.title,
            completed=record.completed,
            parent_id=parent_id,
            position=len(self._siblings(storyline, parent_id)),
        )
        self._insert(storyline, quest)
        return await self._create_remote(storyline.id, quest)

    # ---------- Internals ----------

    def _next_placeholder(self) -> str:
        return f"{PLACEHOLDER_PREFIX}{next(self._placeholders)}"

    def _resolve(self, entity_id: str | None) -> str | None:
        if entity_id is None:
            return None
        return self._resolved.get(entity_id, entity_id)

    def _set_forest(self, storyline_id: "StorylineId", forest: tree.Forest) -> None:
        self._storylines[storyline_id] = replace(self._storylines[storyline_id], quests=forest)

    def _current(self, storyline_id: "StorylineId", quest_id: "QuestId") -> Quest | None:
        storyline = self._storylines.get(storyline_id)
        if storyline is None:
            return None
        return tree.find_node(storyline.quests, quest_id)

    def _siblings(self, storyline: Storyline, parent_id: "QuestId | None") -> tuple[Quest, ...]:
        if parent_id is None:
            return storyline.quests
        parent = tree.find_node(storyline.quests, parent_id)
        if parent is None:
            raise NotFoundError("Quest", parent_id)
        return parent.subquests

    def _insert(self, storyline: Storyline, quest: Quest) -> None:
        forest = tree.insert_node(storyline.quests, quest, quest.parent_id)
        if forest is storyline.quests:
            raise NotFoundError("Quest", quest.parent_id)
        self._set_forest(storyline.id, forest)

    def _track_create(self, placeholder: str) -> asyncio.Future:
        """Register an in-flight create; the future yields the server id or None."""
        created = asyncio.get_running_loop().create_future()
        self._creates[placeholder] = created
        return created

    async def _server_id(self, entity_id: str) -> str | None:
        """
        The stored id for ``entity_id``, waiting for its create if that is
        still in flight. None when the entity never reached the store.
        """
        if not is_placeholder(entity_id):
            return entity_id
        created = self._creates.get(entity_id)
        if created is None:
            return None
        return await created

    def _never_stored(self, entity_id: str) -> bool:
        created = self._creates.get(entity_id)
        return created is not None and created.done() and created.result() is None

    async def _create_remote(self, storyline_id: "StorylineId", quest: Quest) -> OperationOutcome:
        """Send a placeholder quest to the store and swap in the server id."""
        if self.remote is None:
            return OperationOutcome(quest)

        created = self._track_create(quest.id)
        server_id = None
        try:
            outcome = await self._send_create(storyline_id, quest)
            if outcome.value is not None and not is_placeholder(outcome.value.id):
                server_id = outcome.value.id
            return outcome
        finally:
            # Subquests added meanwhile are waiting for this id
            created.set_result(server_id)

    async def _send_create(self, storyline_id: "StorylineId", quest: Quest) -> OperationOutcome:
        placeholder = quest.id

        # A pending storyline or parent must reach the store first
        stored_storyline_id = await self._server_id(storyline_id)
        stored_parent_id = None
        if quest.parent_id is not None:
            stored_parent_id = await self._server_id(quest.parent_id)

        storyline_id = self._resolve(storyline_id)
        if self._current(storyline_id, placeholder) is None:
            logger.debug("Quest %s removed before it could be created", placeholder)
            return OperationOutcome(None)
        if stored_storyline_id is None or (quest.parent_id is not None and stored_parent_id is None):
            missing = "storyline" if stored_storyline_id is None else "parent quest"
            failure = StoreFailure(FailureKind.NOT_FOUND, f"{missing} of {placeholder} was never stored")
            self._log_failure("add quest", failure)
            return OperationOutcome(self._current(storyline_id, placeholder), failure)

        result = await self.remote.create(
            EntityKind.QUEST,
            {
                "storyline_id": stored_storyline_id,
                "parent_id": stored_parent_id,
                "title": quest.title,
                "completed": quest.completed,
                "position": quest.position,
            },
        )
        storyline_id = self._resolve(storyline_id)
        if not result.ok:
            self._log_failure("add quest", result)
            return OperationOutcome(self._current(storyline_id, placeholder) or quest, result)

        server_id = result.fields["id"]
        self._resolved[placeholder] = server_id
        if storyline_id not in self._storylines:
            # Storyline delete already removed the row with its quests
            return OperationOutcome(None)
        if self._current(storyline_id, placeholder) is None:
            logger.debug("Quest %s deleted before creation finished", placeholder)
            await self._remote_call("delete quest", self.remote.delete(EntityKind.QUEST, server_id))
            return OperationOutcome(None)

        forest = tree.replace_id(self._storylines[storyline_id].quests, placeholder, server_id)
        server_fields = {
            key: result.fields[key] for key in ("created_at", "position") if key in result.fields
        }
        if server_fields:
            forest = tree.apply_server_fields(forest, server_id, **server_fields)
        self._set_forest(storyline_id, forest)

        # Edits made while the create was in flight went nowhere; send them now
        current = tree.find_node(forest, server_id)
        patch = {}
        if current.title != quest.title:
            patch["title"] = current.title
        if current.completed != quest.completed:
            patch["completed"] = current.completed
        failure = None
        if patch:
            failure = await self._push_patch(server_id, patch, "sync quest")
        return OperationOutcome(current, failure)

    async def _push_patch(self, quest_id: "QuestId", patch: dict, action: str) -> StoreFailure | None:
        if self.remote is None:
            return None
        if is_placeholder(quest_id):
            if self._never_stored(quest_id):
                failure = StoreFailure(FailureKind.NOT_FOUND, f"quest {quest_id} was never stored")
                self._log_failure(action, failure)
                return failure
            # Pending quests send their latest fields once created
            return None
        return await self._remote_call(action, self.remote.update(EntityKind.QUEST, quest_id, patch))

    async def _remote_call(self, action: str, call) -> StoreFailure | None:
        result = await call
        if result.ok:
            return None
        self._log_failure(action, result)
        return result

    def _log_failure(self, action: str, failure: StoreFailure) -> None:
        logger.warning("%s failed (%s): %s", action, failure.kind.value, failure.detail)
