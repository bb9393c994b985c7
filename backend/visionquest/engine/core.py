# backend/visionquest/engine/core.py
"""
QuestCore - wires one user's systems together.

The core owns the undo history and hands it to the quest store, so each
user (and each test) gets an independent history.
"""

from __future__ import annotations

import logging
import random

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .. import config
from .loader import load_user_state
from .state import UserState
from .systems import (ProgressionEngine, QuestTreeStore, RemoteStore,
                      RewardEngine, SqlRemoteStore, UndoStack)

logger = logging.getLogger(__name__)


class QuestCore:
    """
    Usage:
        core = await QuestCore.load(AsyncSessionLocal, user_id)
        await core.quests.add_quest(storyline_id, "Read a chapter")
        await core.quests.undo_delete()
    """

    def __init__(
        self,
        state: UserState,
        remote: RemoteStore | None = None,
        *,
        rng: random.Random | None = None,
        undo_limit: int = config.UNDO_LIMIT,
        quest_xp: int = config.QUEST_XP,
        xp_per_level: int = config.XP_PER_LEVEL,
    ) -> None:
        self.user_id = state.user_id
        self.remote = remote
        self.undo = UndoStack(limit=undo_limit)
        self.rewards = RewardEngine(state.catalog, state.inventory, remote=remote, rng=rng)
        self.progression = ProgressionEngine(
            state.progression, rewards=self.rewards, remote=remote, xp_per_level=xp_per_level
        )
        self.quests = QuestTreeStore(
            state.storylines,
            remote=remote,
            progression=self.progression,
            undo=self.undo,
            quest_xp=quest_xp,
        )

    @classmethod
    async def load(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        user_id: str,
        **kwargs,
    ) -> "QuestCore":
        """Load the user's state from the database and bind a SqlRemoteStore."""
        async with session_factory() as session:
            state = await load_user_state(session, user_id)
        logger.info(
            "Loaded user %s: %d storylines, level %d, %d inventory slots",
            user_id,
            len(state.storylines),
            state.progression.level,
            len(state.inventory),
        )
        return cls(state, SqlRemoteStore(session_factory, user_id), **kwargs)
