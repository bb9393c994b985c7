# backend/visionquest/engine/systems/remote.py
"""
Remote store adapter - persists quest journal changes to the relational store.

Provides:
- A storage-agnostic ``RemoteStore`` protocol (create/update/delete/bulk_reposition)
- Typed results: ``StoreSuccess`` carrying server-assigned fields, or
  ``StoreFailure`` with a ``FailureKind``
- ``SqlRemoteStore``, the SQLAlchemy implementation scoped to one user

Adapters never raise for store problems; every outcome is returned as a
value so the quest store can log it and keep its optimistic state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Protocol, runtime_checkable

from sqlalchemy import delete, insert, inspect, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ... import models

logger = logging.getLogger(__name__)


class EntityKind(Enum):
    STORYLINE = "storyline"
    QUEST = "quest"
    PROGRESS = "progress"
    INVENTORY = "inventory"


class FailureKind(Enum):
    NETWORK_ERROR = "network_error"  # transient connectivity / database unavailable
    SCHEMA_ERROR = "schema_error"  # store lacks an expected column (quests.position)
    NOT_FOUND = "not_found"  # referenced row absent or owned by another user
    UNAUTHORIZED = "unauthorized"  # no user context


@dataclass(frozen=True)
class StoreSuccess:
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class StoreFailure:
    kind: FailureKind
    detail: str = ""

    @property
    def ok(self) -> bool:
        return False


StoreResult = StoreSuccess | StoreFailure


@runtime_checkable
class RemoteStore(Protocol):
    """Contract every backing store implements."""

    async def create(self, kind: EntityKind, fields: dict[str, Any]) -> StoreResult:
        ...

    async def update(self, kind: EntityKind, entity_id: str, patch: dict[str, Any]) -> StoreResult:
        ...

    async def delete(self, kind: EntityKind, entity_id: str) -> StoreResult:
        ...

    async def bulk_reposition(self, entries: Iterable[tuple[str, int]]) -> StoreResult:
        ...


def _is_missing_column(exc: SQLAlchemyError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return "no such column" in message or (
        "column" in message and "does not exist" in message
    )


# Quest fields the store accepts on update
QUEST_PATCH_FIELDS = frozenset({"title", "completed"})
PROGRESS_FIELDS = frozenset({"xp", "level"})

# Progress rows are keyed by the adapter's own user
CURRENT_USER = "me"


class SqlRemoteStore:
    """
    RemoteStore backed by an async SQLAlchemy session factory.

    Every call runs in its own transaction and is scoped to ``user_id``;
    rows belonging to other users are reported as NOT_FOUND.

    Usage:
        store = SqlRemoteStore(AsyncSessionLocal, user_id="u-1")
        result = await store.create(EntityKind.STORYLINE, {"title": "Get fit"})
        if result.ok:
            storyline_id = result.fields["id"]
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        user_id: str | None,
    ) -> None:
        self.session_factory = session_factory
        self.user_id = user_id
        # None until the quests table has been inspected
        self._has_position: bool | None = None

    # ---------- Contract ----------

    async def create(self, kind: EntityKind, fields: dict[str, Any]) -> StoreResult:
        handler = {
            EntityKind.STORYLINE: self._create_storyline,
            EntityKind.QUEST: self._create_quest,
            EntityKind.INVENTORY: self._create_slot,
        }.get(kind)
        if handler is None:
            raise ValueError(f"cannot create {kind.value}")
        return await self._run(f"create {kind.value}", lambda s: handler(s, fields))

    async def update(self, kind: EntityKind, entity_id: str, patch: dict[str, Any]) -> StoreResult:
        handler = {
            EntityKind.QUEST: self._update_quest,
            EntityKind.PROGRESS: lambda s, _id, p: self._upsert_progress(s, p),
            EntityKind.INVENTORY: self._update_slot,
        }.get(kind)
        if handler is None:
            raise ValueError(f"cannot update {kind.value}")
        return await self._run(f"update {kind.value}", lambda s: handler(s, entity_id, patch))

    async def delete(self, kind: EntityKind, entity_id: str) -> StoreResult:
        handler = {
            EntityKind.STORYLINE: self._delete_storyline,
            EntityKind.QUEST: self._delete_quest,
        }.get(kind)
        if handler is None:
            raise ValueError(f"cannot delete {kind.value}")
        return await self._run(f"delete {kind.value}", lambda s: handler(s, entity_id))

    async def bulk_reposition(self, entries: Iterable[tuple[str, int]]) -> StoreResult:
        entries = list(entries)
        return await self._run("bulk reposition", lambda s: self._reposition(s, entries))

    # ---------- Schema ----------

    async def _position_supported(self, session: AsyncSession) -> bool:
        if self._has_position is None:
            conn = await session.connection()
            columns = await conn.run_sync(
                lambda sync_conn: [col["name"] for col in inspect(sync_conn).get_columns("quests")]
            )
            self._has_position = "position" in columns
            if not self._has_position:
                logger.warning("quests.position column missing; sibling order will not be stored")
        return self._has_position

    # ---------- Transaction wrapper ----------

    async def _run(
        self,
        action: str,
        operation: Callable[[AsyncSession], Awaitable[StoreResult]],
    ) -> StoreResult:
        if self.user_id is None:
            return StoreFailure(FailureKind.UNAUTHORIZED, f"{action}: no authenticated user")

        try:
            async with self.session_factory() as session:
                result = await operation(session)
                if result.ok:
                    await session.commit()
                else:
                    await session.rollback()
                return result
        except IntegrityError as e:
            return StoreFailure(FailureKind.NOT_FOUND, f"{action}: {e.orig}")
        except DBAPIError as e:
            if _is_missing_column(e):
                self._has_position = False
                return StoreFailure(FailureKind.SCHEMA_ERROR, f"{action}: {e.orig}")
            return StoreFailure(FailureKind.NETWORK_ERROR, f"{action}: {e.orig}")
        except (SQLAlchemyError, OSError) as e:
            return StoreFailure(FailureKind.NETWORK_ERROR, f"{action}: {e}")

    # ---------- Ownership helpers ----------

    def _owned_storylines(self):
        return select(models.Storyline.id).where(models.Storyline.user_id == self.user_id)

    async def _quest_owned(self, session: AsyncSession, quest_id: str) -> str | None:
        """Return the quest's storyline id if the user owns it."""
        quests = models.Quest.__table__
        return await session.scalar(
            select(quests.c.storyline_id).where(
                quests.c.id == quest_id,
                quests.c.storyline_id.in_(self._owned_storylines()),
            )
        )

    # ---------- Storylines ----------

    async def _create_storyline(self, session: AsyncSession, fields: dict[str, Any]) -> StoreResult:
        storyline = models.Storyline(user_id=self.user_id, title=fields["title"])
        session.add(storyline)
        await session.flush()
        await session.refresh(storyline)
        return StoreSuccess({"id": storyline.id, "created_at": storyline.created_at})

    async def _delete_storyline(self, session: AsyncSession, storyline_id: str) -> StoreResult:
        owned = await session.scalar(
            select(models.Storyline.id).where(
                models.Storyline.id == storyline_id, models.Storyline.user_id == self.user_id
            )
        )
        if owned is None:
            return StoreFailure(FailureKind.NOT_FOUND, f"storyline {storyline_id}")

        quests = models.Quest.__table__
        await session.execute(delete(quests).where(quests.c.storyline_id == storyline_id))
        await session.execute(delete(models.Storyline).where(models.Storyline.id == storyline_id))
        return StoreSuccess()

    # ---------- Quests ----------

    async def _create_quest(self, session: AsyncSession, fields: dict[str, Any]) -> StoreResult:
        storyline_id = fields["storyline_id"]
        owned = await session.scalar(
            self._owned_storylines().where(models.Storyline.id == storyline_id)
        )
        if owned is None:
            return StoreFailure(FailureKind.NOT_FOUND, f"storyline {storyline_id}")

        parent_id = fields.get("parent_id")
        if parent_id is not None and await self._quest_owned(session, parent_id) != storyline_id:
            return StoreFailure(FailureKind.NOT_FOUND, f"parent quest {parent_id}")

        quests = models.Quest.__table__
        values = {
            "id": models.new_id(),
            "storyline_id": storyline_id,
            "parent_id": parent_id,
            "title": fields["title"],
            "completed": bool(fields.get("completed", False)),
        }
        if await self._position_supported(session):
            values["position"] = int(fields.get("position", 0))

        await session.execute(insert(quests).values(**values))
        created_at = await session.scalar(
            select(quests.c.created_at).where(quests.c.id == values["id"])
        )

        server_fields = {"id": values["id"], "created_at": created_at}
        if "position" in values:
            server_fields["position"] = values["position"]
        return StoreSuccess(server_fields)

    async def _update_quest(self, session: AsyncSession, quest_id: str, patch: dict[str, Any]) -> StoreResult:
        values = {key: value for key, value in patch.items() if key in QUEST_PATCH_FIELDS}
        if not values:
            return StoreSuccess()

        quests = models.Quest.__table__
        result = await session.execute(
            update(quests)
            .where(quests.c.id == quest_id, quests.c.storyline_id.in_(self._owned_storylines()))
            .values(**values)
        )
        if result.rowcount == 0:
            return StoreFailure(FailureKind.NOT_FOUND, f"quest {quest_id}")
        return StoreSuccess()

    async def _delete_quest(self, session: AsyncSession, quest_id: str) -> StoreResult:
        if await self._quest_owned(session, quest_id) is None:
            return StoreFailure(FailureKind.NOT_FOUND, f"quest {quest_id}")

        # Collect the subtree breadth-first; rows carry only parent links
        quests = models.Quest.__table__
        doomed = [quest_id]
        frontier = [quest_id]
        while frontier:
            children = await session.scalars(
                select(quests.c.id).where(quests.c.parent_id.in_(frontier))
            )
            frontier = list(children)
            doomed.extend(frontier)

        await session.execute(delete(quests).where(quests.c.id.in_(doomed)))
        return StoreSuccess({"deleted": len(doomed)})

    async def _reposition(self, session: AsyncSession, entries: list[tuple[str, int]]) -> StoreResult:
        if not await self._position_supported(session):
            return StoreFailure(FailureKind.SCHEMA_ERROR, "quests.position column is missing")

        quests = models.Quest.__table__
        updated = 0
        for quest_id, position in entries:
            result = await session.execute(
                update(quests)
                .where(quests.c.id == quest_id, quests.c.storyline_id.in_(self._owned_storylines()))
                .values(position=position)
            )
            updated += result.rowcount
        return StoreSuccess({"updated": updated})

    # ---------- Progress ----------

    async def _upsert_progress(self, session: AsyncSession, fields: dict[str, Any]) -> StoreResult:
        values = {key: int(value) for key, value in fields.items() if key in PROGRESS_FIELDS}
        progress = await session.get(models.UserProgress, self.user_id)
        if progress is None:
            progress = models.UserProgress(user_id=self.user_id, xp=0, level=1)
            session.add(progress)
        for key, value in values.items():
            setattr(progress, key, value)
        await session.flush()
        return StoreSuccess({"xp": progress.xp, "level": progress.level})

    # ---------- Inventory ----------

    async def _create_slot(self, session: AsyncSession, fields: dict[str, Any]) -> StoreResult:
        item_id = fields["item_id"]
        if await session.get(models.Item, item_id) is None:
            return StoreFailure(FailureKind.NOT_FOUND, f"item {item_id}")

        slot = models.InventorySlot(
            user_id=self.user_id,
            item_id=item_id,
            quantity=int(fields.get("quantity", 1)),
        )
        session.add(slot)
        await session.flush()
        return StoreSuccess({"id": slot.id})

    async def _update_slot(self, session: AsyncSession, slot_id: str, patch: dict[str, Any]) -> StoreResult:
        result = await session.execute(
            update(models.InventorySlot)
            .where(models.InventorySlot.id == slot_id, models.InventorySlot.user_id == self.user_id)
            .values(quantity=int(patch["quantity"]))
        )
        if result.rowcount == 0:
            return StoreFailure(FailureKind.NOT_FOUND, f"inventory slot {slot_id}")
        return StoreSuccess()
