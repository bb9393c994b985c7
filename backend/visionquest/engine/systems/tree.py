# backend/visionquest/engine/systems/tree.py
"""
Tree codec - pure functions over a quest forest.

A forest is a tuple of root Quests, each holding its children in
``subquests``. Every function returns a new forest and copies only the path
from the root to the changed node; untouched siblings and subtrees are
returned as the very same objects. When nothing matches, the input forest
itself is returned, which lets callers detect a miss with ``is``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Iterable, Iterator

if TYPE_CHECKING:
    from ..state import Quest, QuestId

Forest = tuple["Quest", ...]


def iter_nodes(forest: Forest) -> Iterator["Quest"]:
    """Walk the forest depth-first, parents before children."""
    for quest in forest:
        yield quest
        yield from iter_nodes(quest.subquests)


def find_node(forest: Forest, quest_id: "QuestId") -> "Quest | None":
    for quest in iter_nodes(forest):
        if quest.id == quest_id:
            return quest
    return None


def count_nodes(forest: Forest) -> int:
    return sum(1 for _ in iter_nodes(forest))


def descendant_ids(quest: "Quest") -> set["QuestId"]:
    """Ids of every node below ``quest`` (not including ``quest``)."""
    return {node.id for node in iter_nodes(quest.subquests)}


def _map_path(forest: Forest, quest_id: "QuestId", fn) -> Forest:
    """
    Rebuild the path to ``quest_id``, replacing that node with ``fn(node)``.

    Returns ``forest`` unchanged (same object) if the id is not present.
    """
    for index, quest in enumerate(forest):
        if quest.id == quest_id:
            new_quest = fn(quest)
        else:
            children = _map_path(quest.subquests, quest_id, fn)
            if children is quest.subquests:
                continue
            new_quest = replace(quest, subquests=children)
        return forest[:index] + (new_quest,) + forest[index + 1:]
    return forest


def insert_node(forest: Forest, new_quest: "Quest", parent_id: "QuestId | None") -> Forest:
    """
    Append ``new_quest`` to the roots (``parent_id`` None) or to the children
    of ``parent_id``.

    An unknown ``parent_id`` returns the input unchanged; callers must treat
    that as an error.
    """
    if parent_id is None:
        return forest + (new_quest,)
    return _map_path(
        forest,
        parent_id,
        lambda parent: replace(parent, subquests=parent.subquests + (new_quest,)),
    )


def update_node(forest: Forest, quest_id: "QuestId", **patch) -> Forest:
    """Rewrite the matching node with ``title`` and/or ``completed``."""
    unknown = set(patch) - {"title", "completed"}
    if unknown:
        raise TypeError(f"Cannot patch quest fields: {sorted(unknown)}")
    return _map_path(forest, quest_id, lambda quest: replace(quest, **patch))


def remove_node(forest: Forest, quest_id: "QuestId") -> Forest:
    """Drop the node and its whole subtree from whichever level holds it."""
    for index, quest in enumerate(forest):
        if quest.id == quest_id:
            return forest[:index] + forest[index + 1:]
        children = remove_node(quest.subquests, quest_id)
        if children is not quest.subquests:
            return forest[:index] + (replace(quest, subquests=children),) + forest[index + 1:]
    return forest


def reorder_roots(forest: Forest, ordered_ids: Iterable["QuestId"]) -> Forest:
    """
    Reorder the root level to follow ``ordered_ids`` and renumber positions.

    Only roots move; nested quests keep their order. Unknown ids are ignored
    and roots left out of ``ordered_ids`` follow the listed ones in their
    current order.
    """
    by_id = {quest.id: quest for quest in forest}
    ordered: list["Quest"] = []
    seen: set["QuestId"] = set()
    for quest_id in ordered_ids:
        if quest_id in by_id and quest_id not in seen:
            ordered.append(by_id[quest_id])
            seen.add(quest_id)
    ordered.extend(quest for quest in forest if quest.id not in seen)

    return tuple(
        quest if quest.position == position else replace(quest, position=position)
        for position, quest in enumerate(ordered)
    )


def replace_id(forest: Forest, old_id: "QuestId", new_id: "QuestId") -> Forest:
    """
    Give the node ``old_id`` the id ``new_id``; its direct children follow
    with an updated ``parent_id``.
    """
    def _rename(quest: "Quest") -> "Quest":
        children = tuple(replace(child, parent_id=new_id) for child in quest.subquests)
        return replace(quest, id=new_id, subquests=children)

    return _map_path(forest, old_id, _rename)


def apply_server_fields(forest: Forest, quest_id: "QuestId", **fields) -> Forest:
    """Merge server-assigned fields (position, created_at) into one node."""
    return _map_path(forest, quest_id, lambda quest: replace(quest, **fields))
