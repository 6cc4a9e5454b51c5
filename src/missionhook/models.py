"""Typed representation of a task board snapshot and the events derived from it.

The board file is a JSON document of the shape ``{"tasks": [...]}``. Parsing is
lenient: absent optional fields become empty tuples and unknown keys are kept
in ``extra`` so a snapshot written back to disk does not lose board fields this
package does not interpret.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

STATUS_TODO = "todo"
STATUS_IN_PROGRESS = "in_progress"
STATUS_REVIEW = "review"
STATUS_DONE = "done"

_TASK_KEYS = frozenset(
    {"id", "title", "status", "description", "dod", "tags", "subtasks", "comments"}
)


def _optional_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class Comment:
    author: str
    text: str

    @classmethod
    def from_dict(cls, raw: Any) -> Comment:
        if not isinstance(raw, dict):
            return cls(author="", text=str(raw))
        return cls(author=str(raw.get("author") or ""), text=str(raw.get("text") or ""))

    def to_dict(self) -> dict[str, Any]:
        return {"author": self.author, "text": self.text}


@dataclass(frozen=True)
class Subtask:
    title: str
    done: bool = False

    @classmethod
    def from_dict(cls, raw: Any) -> Subtask:
        if not isinstance(raw, dict):
            return cls(title=str(raw))
        return cls(title=str(raw.get("title") or ""), done=bool(raw.get("done", False)))

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "done": self.done}


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    status: str
    description: str | None = None
    dod: str | None = None
    tags: tuple[str, ...] = ()
    subtasks: tuple[Subtask, ...] = ()
    comments: tuple[Comment, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        tags_any = raw.get("tags")
        subtasks_any = raw.get("subtasks")
        comments_any = raw.get("comments")
        return cls(
            id="" if raw.get("id") is None else str(raw["id"]),
            title=str(raw.get("title") or ""),
            status=str(raw.get("status") or ""),
            description=_optional_text(raw.get("description")),
            dod=_optional_text(raw.get("dod")),
            tags=tuple(str(t) for t in tags_any) if isinstance(tags_any, list) else (),
            subtasks=(
                tuple(Subtask.from_dict(s) for s in subtasks_any)
                if isinstance(subtasks_any, list)
                else ()
            ),
            comments=(
                tuple(Comment.from_dict(c) for c in comments_any)
                if isinstance(comments_any, list)
                else ()
            ),
            extra={k: v for k, v in raw.items() if k not in _TASK_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "title": self.title, "status": self.status}
        if self.description is not None:
            out["description"] = self.description
        if self.dod is not None:
            out["dod"] = self.dod
        if self.tags:
            out["tags"] = list(self.tags)
        if self.subtasks:
            out["subtasks"] = [s.to_dict() for s in self.subtasks]
        if self.comments:
            out["comments"] = [c.to_dict() for c in self.comments]
        out.update(self.extra)
        return out

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    @property
    def latest_comment(self) -> Comment | None:
        return self.comments[-1] if self.comments else None

    def ref(self, *, with_status: bool = True) -> TaskRef:
        return TaskRef(id=self.id, title=self.title, status=self.status if with_status else None)


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time collection of tasks in board (appearance) order.

    A snapshot parsed from JSON keeps the decoded document in ``raw`` and
    ``to_dict`` returns it unchanged, so persisting a fetched board writes back
    exactly what was fetched.
    """

    tasks: tuple[Task, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict, compare=False)
    raw: dict[str, Any] | None = field(default=None, compare=False, repr=False)

    @classmethod
    def empty(cls) -> Snapshot:
        return cls()

    @classmethod
    def from_dict(cls, raw: Any) -> Snapshot:
        if not isinstance(raw, dict):
            return cls()
        tasks_any = raw.get("tasks")
        tasks: list[Task] = []
        if isinstance(tasks_any, list):
            for entry in tasks_any:
                if isinstance(entry, dict):
                    tasks.append(Task.from_dict(entry))
        return cls(
            tasks=tuple(tasks),
            extra={k: v for k, v in raw.items() if k != "tasks"},
            raw=raw,
        )

    def to_dict(self) -> dict[str, Any]:
        if self.raw is not None:
            return self.raw
        return {**self.extra, "tasks": [t.to_dict() for t in self.tasks]}

    def find(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def __len__(self) -> int:
        return len(self.tasks)


@dataclass(frozen=True)
class TaskRef:
    """Minimal task reference carried by an event."""

    id: str
    title: str
    status: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "title": self.title}
        if self.status is not None:
            out["status"] = self.status
        return out

    def as_task(self) -> Task:
        return Task(id=self.id, title=self.title, status=self.status or "")


@dataclass(frozen=True)
class Event:
    type: ClassVar[str] = "event"

    task: TaskRef

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "task": self.task.to_dict()}


@dataclass(frozen=True)
class CreatedEvent(Event):
    type: ClassVar[str] = "created"


@dataclass(frozen=True)
class DeletedEvent(Event):
    type: ClassVar[str] = "deleted"


@dataclass(frozen=True)
class MovedEvent(Event):
    type: ClassVar[str] = "moved"

    from_status: str = ""
    to_status: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "from": self.from_status, "to": self.to_status}


@dataclass(frozen=True)
class CommentedEvent(Event):
    type: ClassVar[str] = "commented"

    comment: Comment = field(default_factory=lambda: Comment(author="", text=""))

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "comment": self.comment.to_dict()}


@dataclass(frozen=True)
class EpicInfo:
    epic_task: Task
    child_tasks: tuple[Task, ...]

    @property
    def child_count(self) -> int:
        return len(self.child_tasks)


@dataclass(frozen=True)
class RepoInfo:
    owner: str
    name: str
    full_name: str
    private: bool = False
    default_branch: str = "main"
    api_base: str = ""


def extract_repo_info(payload: dict[str, Any], api_url: str = "https://api.github.com") -> RepoInfo:
    repo_any = payload.get("repository")
    repo: dict[str, Any] = repo_any if isinstance(repo_any, dict) else {}
    owner_any = repo.get("owner")
    owner_obj: dict[str, Any] = owner_any if isinstance(owner_any, dict) else {}
    full_name = str(repo.get("full_name") or "")
    return RepoInfo(
        owner=str(owner_obj.get("login") or owner_obj.get("name") or ""),
        name=str(repo.get("name") or ""),
        full_name=full_name,
        private=bool(repo.get("private", False)),
        default_branch=str(repo.get("default_branch") or "main"),
        api_base=f"{api_url.rstrip('/')}/repos/{full_name}",
    )


__all__ = [
    "STATUS_TODO",
    "STATUS_IN_PROGRESS",
    "STATUS_REVIEW",
    "STATUS_DONE",
    "Comment",
    "Subtask",
    "Task",
    "Snapshot",
    "TaskRef",
    "Event",
    "CreatedEvent",
    "DeletedEvent",
    "MovedEvent",
    "CommentedEvent",
    "EpicInfo",
    "RepoInfo",
    "extract_repo_info",
]
