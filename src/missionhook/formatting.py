"""Slack / agent message rendering.

All functions are pure: identical inputs give identical text, which keeps the
golden-output tests in ``tests/test_formatting.py`` stable.
"""

from __future__ import annotations

from collections.abc import Sequence

from .models import (
    STATUS_DONE,
    STATUS_REVIEW,
    CommentedEvent,
    CreatedEvent,
    EpicInfo,
    Event,
    MovedEvent,
    Snapshot,
    Task,
)

SUMMARY_EVENT_LIMIT = 5

ICON_DONE = "✅"
ICON_REVIEW = "👀"
ICON_MOVED = "📌"
ICON_CREATED = "✨"
ICON_COMMENT = "💬"
ICON_HEADER = "📋"
ICON_ROBOT = "🤖"
ICON_EPIC = "🎯"
ICON_START = "🚀"
ICON_PENDING = "⬜"
ICON_PING = "🏓"
ICON_WARNING = "⚠️"

WORK_ORDER_CLOSING = (
    "Carry out this work now. When finished: set the ticket status to "
    '"review" and document the outcome as a comment.'
)


def _header(actor: str) -> str:
    return f"{ICON_HEADER} **Mission Control Update** (by {actor})"


def status_icon(status: str) -> str:
    if status == STATUS_DONE:
        return ICON_DONE
    if status == STATUS_REVIEW:
        return ICON_REVIEW
    return ICON_MOVED


def format_event_line(event: Event) -> str | None:
    if isinstance(event, MovedEvent):
        return (
            f"{status_icon(event.to_status)} **{event.task.title}**: "
            f"{event.from_status} → {event.to_status}"
        )
    if isinstance(event, CreatedEvent):
        return f"{ICON_CREATED} **New:** {event.task.title}"
    if isinstance(event, CommentedEvent):
        return f'{ICON_COMMENT} **Comment** on "{event.task.title}"'
    return None


def format_diff_summary(events: Sequence[Event], actor: str) -> str:
    lines = [_header(actor), ""]
    for event in events[:SUMMARY_EVENT_LIMIT]:
        line = format_event_line(event)
        if line is not None:
            lines.append(line)
    if len(events) > SUMMARY_EVENT_LIMIT:
        lines.append(f"_...and {len(events) - SUMMARY_EVENT_LIMIT} more changes_")
    return "\n".join(lines)


def _subtask_lines(task: Task) -> list[str]:
    if not task.subtasks:
        return []
    lines = ["**Subtasks:**"]
    for sub in task.subtasks:
        check = ICON_DONE if sub.done else ICON_PENDING
        lines.append(f"{check} {sub.title}")
    return lines


def _task_body_lines(task: Task) -> list[str]:
    lines: list[str] = []
    if task.description:
        lines.append(f"**Task:** {task.description}")
    if task.dod:
        lines.append(f"**Definition of Done:** {task.dod}")
    lines.extend(_subtask_lines(task))
    return lines


def format_work_order(tasks: Sequence[Task], snapshot: Snapshot) -> str:
    """Render a work order for one or more tasks newly moved to in progress.

    Each task is re-read from ``snapshot`` so the full record (description,
    subtasks, comments) is rendered even when only a reference was passed.
    """
    lines = [f"{ICON_ROBOT} **WORK ORDER - please execute:**", ""]
    for task in tasks:
        full = snapshot.find(task.id) or task
        lines.append(f"**Task ID:** {full.id}")
        lines.append(f"**Title:** {full.title}")
        lines.extend(_task_body_lines(full))
        latest = full.latest_comment
        if latest is not None:
            lines.append(f"**Latest comment** ({latest.author}):")
            lines.append(f"> {latest.text}")
        lines.append("")
    lines.append("---")
    lines.append(WORK_ORDER_CLOSING)
    return "\n".join(lines)


def format_epic_work_order(epic: Task, children: Sequence[Task]) -> str:
    count = len(children)
    lines = [f"{ICON_EPIC} **EPIC WORK ORDER**", ""]
    lines.append(f"**EPIC:** {epic.title}")
    if epic.description:
        lines.append(f"**Description:** {epic.description}")
    lines.append("")
    lines.append(f"**This EPIC contains {count} tickets to be worked through in order:**")
    lines.append("")

    for position, child in enumerate(children, start=1):
        lines.append("---")
        lines.append(f"### {position}. {child.title}")
        lines.append(f"**Task ID:** {child.id}")
        lines.extend(_task_body_lines(child))
        lines.append("")

    lines.extend(
        [
            "---",
            "",
            "**INSTRUCTIONS:**",
            f"1. Work through the tickets in order 1 to {count}",
            "2. After each ticket:",
            "   - Add a comment describing the result",
            '   - Set the ticket to "review"',
            "   - Mark the matching subtask in the EPIC as done",
            '3. After the last ticket: set the EPIC to "review"',
            "",
        ]
    )
    if children:
        lines.append(f"**Start now with ticket 1:** {children[0].title}")
    return "\n".join(lines)


def format_start_notification(
    actor: str, in_progress: Sequence[Task], epic_info: EpicInfo | None
) -> str:
    lines = [_header(actor), ""]
    for task in in_progress:
        if epic_info is not None and epic_info.epic_task.id == task.id:
            lines.append(f"{ICON_EPIC} **EPIC: {task.title}** → In Progress")
            lines.append(
                f"   _{epic_info.child_count} child tickets will be worked through in sequence_"
            )
        else:
            lines.append(f"{ICON_START} **{task.title}** → In Progress")
    lines.append("")
    lines.append(f"{ICON_ROBOT} _Background agent is starting work..._")
    return "\n".join(lines)


def format_greeting(zen: str) -> str:
    return f'{ICON_PING} **GitHub webhook connected!**\n_"{zen}"_'


def format_fetch_error(message: str) -> str:
    return f"{ICON_WARNING} **GitHub fetch failed**\n```{message}```"


__all__ = [
    "SUMMARY_EVENT_LIMIT",
    "WORK_ORDER_CLOSING",
    "status_icon",
    "format_event_line",
    "format_diff_summary",
    "format_work_order",
    "format_epic_work_order",
    "format_start_notification",
    "format_greeting",
    "format_fetch_error",
]
