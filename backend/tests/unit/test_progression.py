"""
Unit tests for experience and level progression.

Tests the pure xp transition and the ProgressionEngine (level-up rewards,
progress ratio, persistence calls).
"""

import random

import pytest

from visionquest.engine.state import ProgressionState
from visionquest.engine.systems import (EntityKind, FailureKind,
                                        ProgressionEngine, RewardEngine)
from visionquest.engine.systems.progression import apply_xp

# ============================================================================
# Pure Transition Tests
# ============================================================================


@pytest.mark.unit
def test_apply_xp_below_threshold():
    state, leveled = apply_xp(ProgressionState(xp=100, level=1), 50, 1000)
    assert state == ProgressionState(xp=150, level=1)
    assert leveled is False


@pytest.mark.unit
def test_apply_xp_carries_remainder():
    state, leveled = apply_xp(ProgressionState(xp=980, level=1), 50, 1000)
    assert state == ProgressionState(xp=30, level=2)
    assert leveled is True


@pytest.mark.unit
def test_apply_xp_exact_threshold():
    state, leveled = apply_xp(ProgressionState(xp=1950, level=2), 50, 1000)
    assert state == ProgressionState(xp=0, level=3)
    assert leveled is True


@pytest.mark.unit
def test_apply_xp_single_step_for_large_award():
    """A huge award yields one level; the surplus waits for the next award."""
    state, leveled = apply_xp(ProgressionState(xp=0, level=1), 2500, 1000)
    assert state == ProgressionState(xp=1500, level=2)
    assert leveled is True


@pytest.mark.unit
def test_apply_xp_clamps_at_zero_without_level_down():
    state, leveled = apply_xp(ProgressionState(xp=20, level=3), -50, 1000)
    assert state == ProgressionState(xp=0, level=3)
    assert leveled is False


# ============================================================================
# ProgressionEngine Tests
# ============================================================================


@pytest.mark.unit
def test_progress_ratio_and_threshold():
    engine = ProgressionEngine(ProgressionState(xp=500, level=2), xp_per_level=1000)
    assert engine.xp_required == 2000
    assert engine.progress_ratio() == 0.25


@pytest.mark.unit
def test_progress_ratio_capped():
    engine = ProgressionEngine(ProgressionState(xp=1500, level=1), xp_per_level=1000)
    assert engine.progress_ratio() == 1.0


@pytest.mark.unit
def test_snapshot_is_a_copy():
    engine = ProgressionEngine(ProgressionState(xp=10, level=1))
    snap = engine.snapshot()
    snap.xp = 999
    assert engine.xp == 10


@pytest.mark.unit
async def test_add_xp_level_up_awards_reward(catalog, recording_remote):
    rewards = RewardEngine(catalog, rng=random.Random(7))
    engine = ProgressionEngine(
        ProgressionState(xp=980, level=1), rewards=rewards, remote=recording_remote, xp_per_level=1000
    )

    result = await engine.add_xp(50)

    assert result.leveled_up is True
    assert (result.xp, result.level) == (30, 2)
    assert result.reward in catalog
    assert rewards.quantity_of(result.reward.id) == 1


@pytest.mark.unit
async def test_add_xp_without_level_up_has_no_reward(catalog):
    rewards = RewardEngine(catalog)
    engine = ProgressionEngine(ProgressionState(xp=0, level=1), rewards=rewards)

    result = await engine.add_xp(50)

    assert result.leveled_up is False
    assert result.reward is None
    assert rewards.inventory == ()


@pytest.mark.unit
async def test_add_xp_persists_progress(recording_remote):
    engine = ProgressionEngine(ProgressionState(xp=0, level=1), remote=recording_remote)

    await engine.add_xp(50)

    [call] = recording_remote.calls_for("update", EntityKind.PROGRESS)
    assert call[3] == {"xp": 50, "level": 1}


@pytest.mark.unit
async def test_add_xp_keeps_state_when_persist_fails(recording_remote):
    recording_remote.fail("update", FailureKind.NETWORK_ERROR)
    engine = ProgressionEngine(ProgressionState(xp=0, level=1), remote=recording_remote)

    result = await engine.add_xp(50)

    assert result.xp == 50
    assert engine.xp == 50
