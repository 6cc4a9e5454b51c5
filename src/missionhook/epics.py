"""Epic detection and child-ticket resolution.

An epic is a container task whose subtasks point at other board tasks through
a leading id token, e.g. ``"AB-12: wire the exporter"`` refers to the task
whose id is ``ab_12`` (or starts with it). The predicate and the prefix parser
are kept separate from the resolver so either matching rule can change
without touching the control flow below.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from .logging import get_logger
from .models import EpicInfo, Subtask, Task

EPIC_TAG = "epic"
EPIC_TITLE_MARKER = "EPIC:"
EPIC_GLYPH = "🎯"

_CHILD_PREFIX_RE = re.compile(r"^([A-Z0-9-]+):")

ResolutionStatus = Literal["resolved", "no_prefix", "no_match"]


@dataclass(frozen=True)
class SubtaskResolution:
    subtask: Subtask
    status: ResolutionStatus
    prefix: str | None = None
    task: Task | None = None

    @property
    def resolved(self) -> bool:
        return self.status == "resolved"


def is_epic(task: Task) -> bool:
    if task.has_tag(EPIC_TAG):
        return True
    return EPIC_TITLE_MARKER in task.title or EPIC_GLYPH in task.title


def parse_child_prefix(title: str) -> str | None:
    """Return the normalized id prefix of a subtask title, if any."""
    match = _CHILD_PREFIX_RE.match(title)
    if not match:
        return None
    return match.group(1).lower().replace("-", "_")


def lookup_child(prefix: str, all_tasks: Sequence[Task]) -> Task | None:
    for task in all_tasks:
        if task.id == prefix:
            return task
    for task in all_tasks:
        if task.id.startswith(prefix):
            return task
    return None


def resolve_subtask(subtask: Subtask, all_tasks: Sequence[Task]) -> SubtaskResolution:
    prefix = parse_child_prefix(subtask.title)
    if prefix is None:
        return SubtaskResolution(subtask=subtask, status="no_prefix")
    task = lookup_child(prefix, all_tasks)
    if task is None:
        return SubtaskResolution(subtask=subtask, status="no_match", prefix=prefix)
    return SubtaskResolution(subtask=subtask, status="resolved", prefix=prefix, task=task)


def find_child_tasks(epic: Task, all_tasks: Sequence[Task]) -> list[Task]:
    children: list[Task] = []
    for subtask in epic.subtasks:
        resolution = resolve_subtask(subtask, all_tasks)
        if resolution.task is None:
            get_logger().debug(
                "epic subtask unresolved",
                epic_id=epic.id,
                subtask=subtask.title,
                resolution=resolution.status,
            )
            continue
        children.append(resolution.task)
    return children


def resolve_epic(candidates: Sequence[Task], all_tasks: Sequence[Task]) -> EpicInfo | None:
    """Return the first candidate epic that resolves to at least one child.

    Epic-looking candidates without resolvable children are passed over so a
    later candidate can still win.
    """
    for task in candidates:
        if not is_epic(task):
            continue
        children = find_child_tasks(task, all_tasks)
        if children:
            return EpicInfo(epic_task=task, child_tasks=tuple(children))
    return None


__all__ = [
    "EPIC_TAG",
    "EPIC_TITLE_MARKER",
    "EPIC_GLYPH",
    "SubtaskResolution",
    "is_epic",
    "parse_child_prefix",
    "lookup_child",
    "resolve_subtask",
    "find_child_tasks",
    "resolve_epic",
]
