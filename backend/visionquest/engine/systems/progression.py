# backend/visionquest/engine/systems/progression.py
"""
ProgressionEngine - experience and level state machine.

Rules:
- The threshold for the next level is ``level * XP_PER_LEVEL``.
- Reaching it raises the level by exactly one and carries the remainder.
  The check runs once per call, so a single huge award yields one level
  and the carried xp may sit above the new threshold until the next award.
- xp never drops below 0 and losing xp never lowers the level.
- Each level-up draws a reward from the RewardEngine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ... import config
from ..state import ProgressionState
from .remote import CURRENT_USER, EntityKind

if TYPE_CHECKING:
    from ..state import Item
    from .remote import RemoteStore
    from .rewards import RewardEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressionResult:
    leveled_up: bool
    reward: "Item | None"
    xp: int
    level: int


def apply_xp(
    state: ProgressionState,
    delta: int,
    xp_per_level: int = config.XP_PER_LEVEL,
) -> tuple[ProgressionState, bool]:
    """
    Pure transition: return the new state and whether a level-up happened.
    """
    new_xp = state.xp + delta
    threshold = state.level * xp_per_level
    if new_xp >= threshold:
        return ProgressionState(xp=new_xp - threshold, level=state.level + 1), True
    return ProgressionState(xp=max(new_xp, 0), level=state.level), False


class ProgressionEngine:
    """
    Usage:
        progression = ProgressionEngine(ProgressionState(), rewards, remote)
        result = await progression.add_xp(50)
        if result.leveled_up:
            notify(result.reward)
    """

    def __init__(
        self,
        state: ProgressionState | None = None,
        rewards: "RewardEngine | None" = None,
        remote: "RemoteStore | None" = None,
        xp_per_level: int = config.XP_PER_LEVEL,
    ) -> None:
        self.state = state or ProgressionState()
        self.rewards = rewards
        self.remote = remote
        self.xp_per_level = xp_per_level

    @property
    def xp(self) -> int:
        return self.state.xp

    @property
    def level(self) -> int:
        return self.state.level

    @property
    def xp_required(self) -> int:
        return self.state.level * self.xp_per_level

    def progress_ratio(self) -> float:
        """Fill of the level bar, capped at 1.0."""
        return min(self.state.xp / self.xp_required, 1.0)

    def snapshot(self) -> ProgressionState:
        return ProgressionState(xp=self.state.xp, level=self.state.level)

    async def add_xp(self, delta: int) -> ProgressionResult:
        old_level = self.state.level
        self.state, leveled_up = apply_xp(self.state, delta, self.xp_per_level)

        reward = None
        if leveled_up:
            logger.info("Level up: %d -> %d", old_level, self.state.level)
            if self.rewards is not None:
                reward = await self.rewards.award_random_item()

        await self._persist()
        return ProgressionResult(
            leveled_up=leveled_up,
            reward=reward,
            xp=self.state.xp,
            level=self.state.level,
        )

    async def _persist(self) -> None:
        if self.remote is None:
            return
        result = await self.remote.update(
            EntityKind.PROGRESS, CURRENT_USER, {"xp": self.state.xp, "level": self.state.level}
        )
        if not result.ok:
            logger.warning("Could not store progress: %s", result.detail)
