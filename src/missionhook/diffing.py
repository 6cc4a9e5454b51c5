from __future__ import annotations

from collections.abc import Iterable

from .models import (
    CommentedEvent,
    CreatedEvent,
    DeletedEvent,
    Event,
    MovedEvent,
    Snapshot,
    Task,
)


def index_tasks(tasks: Iterable[Task]) -> dict[str, Task]:
    """Map id -> task keeping first-seen position and last-seen content."""
    index: dict[str, Task] = {}
    for task in tasks:
        index[task.id] = task
    return index


def compare_task(old: Task, new: Task) -> Event | None:
    # A status change masks comment growth for the same id in this cycle.
    if old.status != new.status:
        return MovedEvent(
            task=new.ref(with_status=False),
            from_status=old.status,
            to_status=new.status,
        )
    latest = new.latest_comment
    if len(new.comments) > len(old.comments) and latest is not None:
        return CommentedEvent(task=new.ref(), comment=latest)
    return None


def diff_snapshots(old: Snapshot, new: Snapshot) -> list[Event]:
    """Return created, deleted, then moved/commented events between two snapshots.

    Ordering follows appearance order: created and changed entries follow
    ``new``, deleted entries follow ``old``. Inputs are never mutated.
    """
    old_index = index_tasks(old.tasks)
    new_index = index_tasks(new.tasks)
    events: list[Event] = []

    for task_id, task in new_index.items():
        if task_id not in old_index:
            events.append(CreatedEvent(task=task.ref()))

    for task_id, task in old_index.items():
        if task_id not in new_index:
            events.append(DeletedEvent(task=task.ref(with_status=False)))

    for task_id, new_task in new_index.items():
        old_task = old_index.get(task_id)
        if old_task is None:
            continue
        event = compare_task(old_task, new_task)
        if event is not None:
            events.append(event)

    return events


def summarize_events(events: Iterable[Event]) -> dict[str, int]:
    counts: dict[str, int] = {"created": 0, "deleted": 0, "moved": 0, "commented": 0}
    for event in events:
        counts[event.type] = counts.get(event.type, 0) + 1
    return counts


__all__ = [
    "index_tasks",
    "compare_task",
    "diff_snapshots",
    "summarize_events",
]
