from __future__ import annotations

from missionhook.diffing import compare_task, diff_snapshots, index_tasks, summarize_events
from missionhook.models import (
    Comment,
    CommentedEvent,
    CreatedEvent,
    DeletedEvent,
    MovedEvent,
    Snapshot,
    Task,
)


def _snap(*tasks: Task) -> Snapshot:
    return Snapshot(tasks=tuple(tasks))


def _t(task_id: str, status: str = "todo", comments: int = 0, title: str | None = None) -> Task:
    return Task(
        id=task_id,
        title=title or task_id.upper(),
        status=status,
        comments=tuple(Comment("kim", f"c{i}") for i in range(comments)),
    )


def test_identical_snapshots_produce_no_events():
    snap = _snap(_t("a"), _t("b", "done", comments=2))
    assert diff_snapshots(snap, snap) == []


def test_empty_baseline_reports_every_task_created():
    events = diff_snapshots(Snapshot.empty(), _snap(_t("a"), _t("b")))
    assert [type(e) for e in events] == [CreatedEvent, CreatedEvent]
    assert [e.task.id for e in events] == ["a", "b"]
    assert events[0].task.status == "todo"


def test_status_change_becomes_moved_event():
    events = diff_snapshots(_snap(_t("a", "todo")), _snap(_t("a", "in_progress")))
    assert events == [
        MovedEvent(task=_t("a").ref(with_status=False), from_status="todo", to_status="in_progress")
    ]


def test_comment_growth_becomes_commented_event():
    old = _snap(_t("a", comments=1))
    new = _snap(_t("a", comments=2))
    (event,) = diff_snapshots(old, new)
    assert isinstance(event, CommentedEvent)
    assert event.comment == Comment("kim", "c1")
    assert event.task.status == "todo"


def test_status_change_masks_comment_growth():
    event = compare_task(_t("a", "todo", comments=0), _t("a", "review", comments=3))
    assert isinstance(event, MovedEvent)


def test_comment_removal_is_silent():
    assert compare_task(_t("a", comments=3), _t("a", comments=1)) is None


def test_deleted_tasks_follow_old_order():
    old = _snap(_t("a"), _t("b"), _t("c"))
    new = _snap(_t("b"))
    events = diff_snapshots(old, new)
    assert [type(e) for e in events] == [DeletedEvent, DeletedEvent]
    assert [e.task.id for e in events] == ["a", "c"]
    assert events[0].task.status is None


def test_event_ordering_created_deleted_changed():
    old = _snap(_t("keep", "todo"), _t("gone"))
    new = _snap(_t("keep", "done"), _t("fresh"))
    events = diff_snapshots(old, new)
    assert [e.type for e in events] == ["created", "deleted", "moved"]


def test_at_most_one_event_per_task_id():
    old = _snap(_t("a", "todo"), _t("b", comments=1))
    new = _snap(_t("a", "done", comments=4), _t("b", "review", comments=2))
    events = diff_snapshots(old, new)
    ids = [e.task.id for e in events]
    assert sorted(ids) == ["a", "b"]


def test_duplicate_ids_keep_last_content():
    tasks = [_t("a", "todo"), _t("a", "done")]
    index = index_tasks(tasks)
    assert list(index) == ["a"]
    assert index["a"].status == "done"


def test_diff_does_not_mutate_inputs():
    old = _snap(_t("a"))
    new = _snap(_t("a", "done"), _t("b"))
    before = (old.to_dict(), new.to_dict())
    diff_snapshots(old, new)
    assert (old.to_dict(), new.to_dict()) == before


def test_summarize_events_counts_by_type():
    events = diff_snapshots(_snap(_t("a"), _t("b")), _snap(_t("a", "done"), _t("c")))
    assert summarize_events(events) == {"created": 1, "deleted": 1, "moved": 1, "commented": 0}
