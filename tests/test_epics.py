from __future__ import annotations

from missionhook.epics import (
    find_child_tasks,
    is_epic,
    lookup_child,
    parse_child_prefix,
    resolve_epic,
    resolve_subtask,
)
from missionhook.models import Subtask, Task


def _epic(task_id: str = "epic_1", *subtasks: str, title: str = "Platform", tags=("epic",)) -> Task:
    return Task(
        id=task_id,
        title=title,
        status="in_progress",
        tags=tuple(tags),
        subtasks=tuple(Subtask(s) for s in subtasks),
    )


BOARD = (
    Task(id="mc_1", title="Exporter", status="todo"),
    Task(id="mc_2_metrics", title="Metrics", status="todo"),
    Task(id="mc_20", title="Dashboards", status="todo"),
)


def test_is_epic_by_tag_marker_or_glyph():
    assert is_epic(_epic(title="Plain", tags=("epic",)))
    assert is_epic(_epic(title="EPIC: Platform", tags=()))
    assert is_epic(_epic(title="🎯 Platform", tags=()))
    assert not is_epic(_epic(title="Epic platform", tags=("feature",)))


def test_parse_child_prefix_normalizes():
    assert parse_child_prefix("MC-1: wire the exporter") == "mc_1"
    assert parse_child_prefix("ABC: thing") == "abc"
    assert parse_child_prefix("no prefix here") is None
    assert parse_child_prefix("lower-1: not matched") is None


def test_lookup_prefers_exact_match_over_prefix():
    board = (Task(id="mc_10", title="Ten", status="todo"), Task(id="mc_1", title="One", status="todo"))
    assert lookup_child("mc_1", board).title == "One"


def test_lookup_falls_back_to_startswith():
    assert lookup_child("mc_2", BOARD).id == "mc_2_metrics"
    assert lookup_child("zz", BOARD) is None


def test_resolve_subtask_statuses():
    assert resolve_subtask(Subtask("MC-1: x"), BOARD).resolved
    assert resolve_subtask(Subtask("write docs"), BOARD).status == "no_prefix"
    missing = resolve_subtask(Subtask("ZZ-9: x"), BOARD)
    assert missing.status == "no_match"
    assert missing.prefix == "zz_9"


def test_find_child_tasks_keeps_subtask_order_and_skips_unresolved():
    epic = _epic("epic_1", "MC-20: dashboards", "docs", "MC-1: exporter", "ZZ-9: gone")
    assert [t.id for t in find_child_tasks(epic, BOARD)] == ["mc_20", "mc_1"]


def test_resolve_epic_with_children():
    epic = _epic("epic_1", "MC-1: a", "MC-2: b")
    info = resolve_epic([epic], BOARD)
    assert info is not None
    assert info.epic_task.id == "epic_1"
    assert info.child_count == 2


def test_epic_without_children_is_not_an_epic_dispatch():
    epic = _epic("epic_1", "no prefix", "ZZ-1: missing")
    assert resolve_epic([epic], BOARD) is None


def test_first_resolvable_epic_wins():
    empty_epic = _epic("epic_0", "nothing")
    plain = Task(id="plain", title="Plain", status="in_progress")
    good = _epic("epic_2", "MC-1: a")
    other = _epic("epic_3", "MC-20: b")
    info = resolve_epic([plain, empty_epic, good, other], BOARD)
    assert info is not None
    assert info.epic_task.id == "epic_2"
