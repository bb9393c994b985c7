# backend/visionquest/routes/quests.py
"""
Quest journal API routes.

Thin HTTP layer over a per-user QuestCore. Identity comes from the
X-User-Id header set by the (external) authentication proxy.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

from ..engine.core import QuestCore
from ..engine.state import Quest, Storyline
from ..engine.systems import OperationOutcome, ProgressionResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["quests"])


# ============================================================================
# Request Models
# ============================================================================

class StorylineCreate(BaseModel):
    title: str = Field(..., min_length=1)


class QuestCreate(BaseModel):
    title: str = Field(..., min_length=1)
    parent_id: Optional[str] = None


class QuestPatch(BaseModel):
    title: Optional[str] = None
    completed: Optional[bool] = None


class QuestOrder(BaseModel):
    quest_ids: list[str]


# ============================================================================
# Dependencies
# ============================================================================

async def get_core(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
) -> QuestCore:
    """Return the caller's core, loading it on first use."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )

    state = request.app.state
    session_factory = getattr(state, "session_factory", None)
    if session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized",
        )

    cores: dict[str, QuestCore] = state.cores
    core = cores.get(x_user_id)
    if core is None:
        lock: asyncio.Lock = state.cores_lock
        async with lock:
            core = cores.get(x_user_id)
            if core is None:
                core = await QuestCore.load(session_factory, x_user_id)
                cores[x_user_id] = core
    return core


# ============================================================================
# Serialization
# ============================================================================

def quest_to_dict(quest: Quest) -> dict:
    return {
        "id": quest.id,
        "title": quest.title,
        "completed": quest.completed,
        "parent_id": quest.parent_id,
        "position": quest.position,
        "subquests": [quest_to_dict(q) for q in quest.subquests],
    }


def storyline_to_dict(storyline: Storyline, progress: tuple[int, int]) -> dict:
    completed, total = progress
    return {
        "id": storyline.id,
        "title": storyline.title,
        "created_at": storyline.created_at.isoformat() if storyline.created_at else None,
        "completed_quests": completed,
        "total_quests": total,
        "quests": [quest_to_dict(q) for q in storyline.quests],
    }


def progression_to_dict(result: Optional[ProgressionResult]) -> Optional[dict]:
    if result is None:
        return None
    return {
        "leveled_up": result.leveled_up,
        "reward": (
            {"id": result.reward.id, "name": result.reward.name, "rarity": result.reward.rarity.value}
            if result.reward else None
        ),
        "xp": result.xp,
        "level": result.level,
    }


def failure_to_dict(outcome: OperationOutcome) -> Optional[dict]:
    if outcome.failure is None:
        return None
    return {"kind": outcome.failure.kind.value, "detail": outcome.failure.detail}


# ============================================================================
# Storylines
# ============================================================================

@router.get("/storylines")
async def list_storylines(core: QuestCore = Depends(get_core)):
    return {
        "active_storyline_id": core.quests.active_storyline_id,
        "storylines": [
            storyline_to_dict(s, core.quests.storyline_progress(s.id))
            for s in core.quests.storylines
        ],
    }


@router.post("/storylines", status_code=status.HTTP_201_CREATED)
async def create_storyline(body: StorylineCreate, core: QuestCore = Depends(get_core)):
    outcome = await core.quests.add_storyline(body.title)
    storyline = outcome.value
    return {
        # None when the storyline was deleted before its create finished
        "storyline": (
            storyline_to_dict(storyline, core.quests.storyline_progress(storyline.id))
            if storyline else None
        ),
        "sync_error": failure_to_dict(outcome),
    }


@router.delete("/storylines/{storyline_id}")
async def remove_storyline(storyline_id: str, core: QuestCore = Depends(get_core)):
    outcome = await core.quests.delete_storyline(storyline_id)
    return {"deleted": outcome.value.id, "sync_error": failure_to_dict(outcome)}


@router.put("/storylines/{storyline_id}/active")
async def activate_storyline(storyline_id: str, core: QuestCore = Depends(get_core)):
    core.quests.set_active_storyline(storyline_id)
    return {"active_storyline_id": core.quests.active_storyline_id}


# ============================================================================
# Quests
# ============================================================================

@router.post("/storylines/{storyline_id}/quests", status_code=status.HTTP_201_CREATED)
async def create_quest(storyline_id: str, body: QuestCreate, core: QuestCore = Depends(get_core)):
    outcome = await core.quests.add_quest(storyline_id, body.title, body.parent_id)
    return {
        "quest": quest_to_dict(outcome.value) if outcome.value else None,
        "sync_error": failure_to_dict(outcome),
    }


@router.put("/storylines/{storyline_id}/quests/order")
async def reorder_quests(storyline_id: str, body: QuestOrder, core: QuestCore = Depends(get_core)):
    outcome = await core.quests.reorder_quests(storyline_id, body.quest_ids)
    return {
        "quests": [quest_to_dict(q) for q in outcome.value],
        "ordering_persisted": core.quests.ordering_persisted,
        "sync_error": failure_to_dict(outcome),
    }


@router.patch("/storylines/{storyline_id}/quests/{quest_id}")
async def patch_quest(
    storyline_id: str,
    quest_id: str,
    body: QuestPatch,
    core: QuestCore = Depends(get_core),
):
    sync_errors = []
    progression = None
    if body.title is not None:
        outcome = await core.quests.update_quest(storyline_id, quest_id, body.title)
        if outcome.failure:
            sync_errors.append(failure_to_dict(outcome))
    if body.completed is not None:
        outcome = await core.quests.complete_quest(storyline_id, quest_id, body.completed)
        progression = progression_to_dict(outcome.value)
        if outcome.failure:
            sync_errors.append(failure_to_dict(outcome))

    return {
        "quest": quest_to_dict(core.quests.get_quest(storyline_id, quest_id)),
        "progression": progression,
        "sync_errors": sync_errors,
    }


@router.delete("/storylines/{storyline_id}/quests/{quest_id}")
async def remove_quest(storyline_id: str, quest_id: str, core: QuestCore = Depends(get_core)):
    outcome = await core.quests.delete_quest(storyline_id, quest_id)
    return {
        "deleted": {"title": outcome.value.title, "parent_id": outcome.value.parent_id},
        "undo_available": len(core.undo),
        "sync_error": failure_to_dict(outcome),
    }


@router.post("/undo")
async def undo_delete(core: QuestCore = Depends(get_core)):
    outcome = await core.quests.undo_delete()
    return {
        "restored": quest_to_dict(outcome.value) if outcome.value else None,
        "undo_available": len(core.undo),
        "sync_error": failure_to_dict(outcome),
    }


# ============================================================================
# Progression & Inventory
# ============================================================================

@router.get("/progress")
async def get_progress(core: QuestCore = Depends(get_core)):
    progression = core.progression
    return {
        "xp": progression.xp,
        "level": progression.level,
        "xp_required": progression.xp_required,
        "progress": progression.progress_ratio(),
    }


@router.get("/inventory")
async def get_inventory(core: QuestCore = Depends(get_core)):
    return {
        "slots": [
            {
                "id": entry.slot_id,
                "item_id": entry.item.id,
                "name": entry.item.name,
                "rarity": entry.item.rarity.value,
                "image_ref": entry.item.image_ref,
                "quantity": entry.quantity,
            }
            for entry in core.rewards.inventory_view()
        ]
    }
