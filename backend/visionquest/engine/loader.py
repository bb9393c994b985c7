# backend/visionquest/engine/loader.py
from collections import defaultdict
from pathlib import Path

import yaml
from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from .state import (InventorySlot, Item, ProgressionState, Quest, Rarity,
                    Storyline, UserState)


async def quests_have_position(session: AsyncSession) -> bool:
    """True once the migration adding quests.position has run."""
    conn = await session.connection()
    columns = await conn.run_sync(
        lambda sync_conn: [col["name"] for col in inspect(sync_conn).get_columns("quests")]
    )
    return "position" in columns


def build_forest(rows: list[dict]) -> tuple[Quest, ...]:
    """
    Assemble ordered quest rows of one storyline into a forest.

    Rows must already be in sibling order. Rows whose parent is missing are
    attached at the root so nothing loaded is lost.
    """
    known_ids = {row["id"] for row in rows}
    children: dict[str | None, list[dict]] = defaultdict(list)
    for row in rows:
        parent_id = row["parent_id"] if row["parent_id"] in known_ids else None
        children[parent_id].append(row)

    visited: set[str] = set()

    def _build(parent_id: str | None) -> tuple[Quest, ...]:
        built = []
        for row in children.get(parent_id, []):
            if row["id"] in visited:
                continue
            visited.add(row["id"])
            built.append(Quest(
                id=row["id"],
                title=row["title"],
                completed=bool(row["completed"]),
                parent_id=parent_id,
                position=len(built),
                subquests=_build(row["id"]),
                created_at=row.get("created_at"),
            ))
        return tuple(built)

    return _build(None)


async def load_storylines(session: AsyncSession, user_id: str) -> list[Storyline]:
    """
    Load every storyline of ``user_id`` with its quest forest.

    Quests are ordered by position with created_at as tie-break, or by
    created_at alone when the position column has not been migrated yet.
    """
    storyline_result = await session.execute(
        select(models.Storyline)
        .where(models.Storyline.user_id == user_id)
        .order_by(models.Storyline.created_at, models.Storyline.id)
    )
    storyline_models = storyline_result.scalars().all()
    if not storyline_models:
        return []

    quests = models.Quest.__table__
    columns = [
        quests.c.id,
        quests.c.storyline_id,
        quests.c.parent_id,
        quests.c.title,
        quests.c.completed,
        quests.c.created_at,
    ]
    if await quests_have_position(session):
        columns.append(quests.c.position)
        ordering = (quests.c.position, quests.c.created_at, quests.c.id)
    else:
        ordering = (quests.c.created_at, quests.c.id)

    quest_result = await session.execute(
        select(*columns)
        .where(quests.c.storyline_id.in_([s.id for s in storyline_models]))
        .order_by(*ordering)
    )

    rows_by_storyline: dict[str, list[dict]] = defaultdict(list)
    for row in quest_result.mappings():
        rows_by_storyline[row["storyline_id"]].append(dict(row))

    return [
        Storyline(
            id=s.id,
            title=s.title,
            created_at=s.created_at,
            quests=build_forest(rows_by_storyline.get(s.id, [])),
        )
        for s in storyline_models
    ]


async def load_progression(session: AsyncSession, user_id: str) -> ProgressionState:
    progress = await session.get(models.UserProgress, user_id)
    if progress is None:
        return ProgressionState()
    return ProgressionState(xp=max(progress.xp, 0), level=max(progress.level, 1))


async def load_catalog(session: AsyncSession) -> list[Item]:
    result = await session.execute(select(models.Item).order_by(models.Item.id))
    return [
        Item(id=i.id, name=i.name, rarity=Rarity(i.rarity), image_ref=i.image_ref)
        for i in result.scalars().all()
    ]


async def load_inventory(session: AsyncSession, user_id: str) -> list[InventorySlot]:
    result = await session.execute(
        select(models.InventorySlot)
        .where(models.InventorySlot.user_id == user_id)
        .order_by(models.InventorySlot.item_id)
    )
    return [
        InventorySlot(id=s.id, item_id=s.item_id, quantity=s.quantity)
        for s in result.scalars().all()
    ]


async def load_user_state(session: AsyncSession, user_id: str) -> UserState:
    """
    Build the in-memory state for one user from the database.

    Called when a user's core is first needed; can be reused for reloads/tests.
    """
    return UserState(
        user_id=user_id,
        storylines=await load_storylines(session, user_id),
        progression=await load_progression(session, user_id),
        catalog=await load_catalog(session),
        inventory=await load_inventory(session, user_id),
    )


def read_item_files(items_dir: Path) -> list[dict]:
    """Read item definitions from every YAML file under ``items_dir``."""
    entries: list[dict] = []
    for yaml_file in sorted(items_dir.glob("**/*.yaml")):
        # Skip schema files
        if yaml_file.name.startswith("_"):
            continue
        with open(yaml_file, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        entries.extend(data.get("items", []) if isinstance(data, dict) else data)
    return entries


async def seed_item_catalog(session: AsyncSession, items_dir: Path) -> int:
    """
    Insert catalog items that are not in the database yet.

    Returns the number of items added. Existing items are left untouched.
    """
    existing = set((await session.scalars(select(models.Item.id))).all())
    added = 0
    for entry in read_item_files(items_dir):
        if entry["id"] in existing:
            continue
        rarity = Rarity(entry.get("rarity", "common")).value
        session.add(models.Item(
            id=entry["id"],
            name=entry["name"],
            rarity=rarity,
            image_ref=entry.get("image_ref"),
        ))
        existing.add(entry["id"])
        added += 1
    await session.commit()
    return added
