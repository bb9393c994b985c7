"""Unit tests for the deleted-quest history."""

import pytest

from visionquest.engine.state import DeletedQuestRecord
from visionquest.engine.systems import UndoStack


def _record(title: str) -> DeletedQuestRecord:
    return DeletedQuestRecord(title=title, completed=False, storyline_id="s1")


@pytest.mark.unit
def test_pop_is_lifo():
    undo = UndoStack()
    undo.push_deleted(_record("first"))
    undo.push_deleted(_record("second"))

    assert undo.peek().title == "second"
    assert undo.pop_last().title == "second"
    assert undo.pop_last().title == "first"
    assert undo.pop_last() is None


@pytest.mark.unit
def test_limit_drops_oldest():
    undo = UndoStack(limit=2)
    for title in ("a", "b", "c"):
        undo.push_deleted(_record(title))

    assert len(undo) == 2
    assert [undo.pop_last().title, undo.pop_last().title] == ["c", "b"]


@pytest.mark.unit
def test_clear():
    undo = UndoStack()
    undo.push_deleted(_record("a"))
    undo.clear()
    assert len(undo) == 0
    assert undo.peek() is None


@pytest.mark.unit
def test_histories_are_independent():
    first, second = UndoStack(), UndoStack()
    first.push_deleted(_record("a"))
    assert len(second) == 0
