"""Webhook pipeline: push payload in, Slack notification / agent dispatch out.

One ``WebhookPipeline.handle`` call walks a fixed sequence of steps:

    signature gate -> ping -> branch gate -> path gate -> baseline load
    -> commit ref -> remote fetch -> persist task file -> diff
    -> persist snapshot -> classify -> notify / dispatch

Each step finishes before the next starts. Scope checks end the run with a
``skipped`` result; only a failed remote fetch is reported back to the caller
as an error message. Collaborator failures after the fetch are logged and
absorbed, and nothing raised by a collaborator escapes ``handle``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .config import MissionConfig
from .diffing import diff_snapshots, summarize_events
from .epics import resolve_epic
from .errors import FetchError, classify_error, redact
from .formatting import (
    format_diff_summary,
    format_epic_work_order,
    format_fetch_error,
    format_greeting,
    format_start_notification,
    format_work_order,
)
from .github_rest import normalize_repo_path
from .logging import get_logger
from .models import (
    STATUS_IN_PROGRESS,
    EpicInfo,
    Event,
    MovedEvent,
    RepoInfo,
    Snapshot,
    Task,
    extract_repo_info,
)
from .observability import get_tracer
from .signature import SIGNATURE_HEADER
from .sinks import DeliveryResult

MAIN_BRANCHES = ("main", "master")
BRANCH_REF_PREFIX = "refs/heads/"
UNKNOWN_ACTOR = "unknown"


class Outcome(str, Enum):
    SKIPPED = "skipped"
    GREETING = "greeting"
    ERROR = "error"
    PROCESSED = "processed"


class SignatureMode(str, Enum):
    DISABLED = "disabled"  # no secret configured; every request accepted
    OPTIONAL = "optional"  # signed requests verified, unsigned accepted
    ENFORCED = "enforced"  # unsigned requests rejected


class TaskSource(Protocol):
    def fetch_snapshot(self, repo: RepoInfo, commit_sha: str, path: str) -> Snapshot: ...


class SnapshotStore(Protocol):
    def load_baseline(self) -> Snapshot: ...

    def write_tasks_file(self, snapshot: Snapshot) -> bool: ...

    def write_snapshot(self, snapshot: Snapshot) -> bool: ...


class Notifier(Protocol):
    def send(self, text: str) -> DeliveryResult: ...


class AgentDispatcher(Protocol):
    def wake(self, message: str, session_key: str, timeout_seconds: int) -> DeliveryResult: ...


SignatureVerifier = Callable[[bytes, str], bool]


@dataclass
class WebhookRequest:
    payload: dict[str, Any]
    headers: Mapping[str, str] = field(default_factory=dict)
    raw_body: bytes | None = None

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass
class PipelineResult:
    deliver: bool
    outcome: Outcome
    message: str | None = None
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"deliver": self.deliver, "outcome": self.outcome.value}
        if self.message is not None:
            out["message"] = self.message
        if self.reason is not None:
            out["reason"] = self.reason
        if self.metadata:
            out["metadata"] = self.metadata
        return out


@dataclass(frozen=True)
class DispatchPlan:
    work_order: str
    session_key: str
    timeout_seconds: int
    epic: EpicInfo | None = None


# ---- Payload helpers -------------------------------------------------------


def resolve_signature_mode(*, require_signature: bool, has_secret: bool) -> SignatureMode:
    if require_signature:
        return SignatureMode.ENFORCED
    return SignatureMode.OPTIONAL if has_secret else SignatureMode.DISABLED


def is_main_branch_ref(ref: str, default_branch: str | None = None) -> bool:
    if not ref.startswith(BRANCH_REF_PREFIX):
        return False
    branch = ref[len(BRANCH_REF_PREFIX):]
    return branch in MAIN_BRANCHES or (bool(default_branch) and branch == default_branch)


def touched_files(commits: Iterable[Any]) -> list[str]:
    files: list[str] = []
    for commit in commits:
        if not isinstance(commit, dict):
            continue
        for key in ("added", "modified", "removed"):
            entries = commit.get(key)
            if isinstance(entries, list):
                files.extend(str(f) for f in entries)
    return files


def touches_path(files: Iterable[str], path: str) -> bool:
    target = normalize_repo_path(path)
    return any(normalize_repo_path(f) == target for f in files)


def resolve_commit_sha(payload: Mapping[str, Any]) -> str | None:
    """Last pushed commit id, else ``after``, else ``head_commit.id``."""
    commits = payload.get("commits")
    if isinstance(commits, list) and commits and isinstance(commits[-1], dict):
        last_id = commits[-1].get("id")
        if last_id:
            return str(last_id)
    after = payload.get("after")
    if after:
        return str(after)
    head = payload.get("head_commit")
    if isinstance(head, dict) and head.get("id"):
        return str(head["id"])
    return None


def resolve_actor(payload: Mapping[str, Any]) -> str:
    pusher = payload.get("pusher")
    if isinstance(pusher, dict) and pusher.get("name"):
        return str(pusher["name"])
    sender = payload.get("sender")
    if isinstance(sender, dict) and sender.get("login"):
        return str(sender["login"])
    return UNKNOWN_ACTOR


def collect_in_progress(events: Sequence[Event], snapshot: Snapshot) -> list[Task]:
    """Tasks moved to in_progress, as full records from ``snapshot``."""
    tasks: list[Task] = []
    for event in events:
        if isinstance(event, MovedEvent) and event.to_status == STATUS_IN_PROGRESS:
            tasks.append(snapshot.find(event.task.id) or event.task.as_task())
    return tasks


def plan_dispatch(
    in_progress: Sequence[Task],
    snapshot: Snapshot,
    config: MissionConfig,
    epic_info: EpicInfo | None,
) -> DispatchPlan:
    agent = config.agent
    if epic_info is not None:
        return DispatchPlan(
            work_order=format_epic_work_order(epic_info.epic_task, epic_info.child_tasks),
            session_key=agent.session_key(epic_info.epic_task.id),
            timeout_seconds=agent.epic_timeout(epic_info.child_count),
            epic=epic_info,
        )
    # Several tasks may move together; the first one names the agent session.
    return DispatchPlan(
        work_order=format_work_order(in_progress, snapshot),
        session_key=agent.session_key(in_progress[0].id),
        timeout_seconds=agent.default_timeout,
    )


# ---- Pipeline --------------------------------------------------------------


class WebhookPipeline:
    def __init__(
        self,
        config: MissionConfig,
        *,
        task_source: TaskSource,
        store: SnapshotStore,
        notifier: Notifier,
        dispatcher: AgentDispatcher,
        verifier: SignatureVerifier | None = None,
    ) -> None:
        self.config = config
        self.task_source = task_source
        self.store = store
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.verifier = verifier
        self.logger = get_logger()

    @property
    def signature_mode(self) -> SignatureMode:
        return resolve_signature_mode(
            require_signature=self.config.secrets.require_signature,
            has_secret=self.verifier is not None,
        )

    def handle(self, request: WebhookRequest) -> PipelineResult:
        with get_tracer().start_as_current_span("missionhook.webhook") as span:
            try:
                result = self._run(request)
            except Exception as exc:  # collaborators must not break the host
                info = classify_error(exc)
                self.logger.log_error(
                    "webhook pipeline failed unexpectedly",
                    error=info.message,
                    category=info.category,
                )
                result = PipelineResult(
                    deliver=False,
                    outcome=Outcome.ERROR,
                    message="[error: internal failure]",
                    reason="internal_error",
                )
            span.set_attribute("missionhook.outcome", result.outcome.value)
            if result.reason:
                span.set_attribute("missionhook.reason", result.reason)
            repo = result.metadata.get("repo")
            if repo:
                span.set_attribute("missionhook.repo", str(repo))
        self.logger.log_outcome(result.outcome.value, result.reason)
        return result

    # -- steps ---------------------------------------------------------------

    def _skip(self, reason: str, message: str, metadata: dict[str, Any]) -> PipelineResult:
        self.logger.info(f"skip: {message}", reason=reason)
        return PipelineResult(
            deliver=False,
            outcome=Outcome.SKIPPED,
            message=f"[skip: {message}]",
            reason=reason,
            metadata=metadata,
        )

    def _signature_gate(self, request: WebhookRequest) -> PipelineResult | None:
        signature = request.header(SIGNATURE_HEADER)
        enforced = self.signature_mode is SignatureMode.ENFORCED
        if not signature or request.raw_body is None:
            if enforced:
                return self._skip("missing_signature", "missing signature", {})
            return None
        if self.verifier is None:
            if enforced:
                return self._skip("invalid_signature", "invalid signature", {})
            return None
        if not self.verifier(request.raw_body, signature):
            self.logger.warning("HMAC validation failed")
            return self._skip("invalid_signature", "invalid signature", {})
        return None

    def _run(self, request: WebhookRequest) -> PipelineResult:
        payload = request.payload
        self.logger.log_operation("webhook_received", signature_mode=self.signature_mode.value)

        rejected = self._signature_gate(request)
        if rejected is not None:
            return rejected

        zen = payload.get("zen")
        if zen:
            self.logger.log_operation("ping_received")
            return PipelineResult(
                deliver=True,
                outcome=Outcome.GREETING,
                message=format_greeting(str(zen)),
                reason="ping",
            )

        repo = extract_repo_info(payload, self.config.github.api_url)
        metadata: dict[str, Any] = {"repo": repo.full_name}
        self.logger.info("repository resolved", repo=repo.full_name)

        ref = str(payload.get("ref") or "")
        if not is_main_branch_ref(ref, repo.default_branch):
            return self._skip("wrong_branch", f"not main branch (ref={ref})", metadata)

        tasks_file = normalize_repo_path(self.config.workspace.tasks_file)
        files = touched_files(payload.get("commits") or [])
        if not touches_path(files, tasks_file):
            self.logger.debug("task board untouched", files=files)
            return self._skip("irrelevant_files", f"{tasks_file} not modified", metadata)

        old = self.store.load_baseline()

        commit_sha = resolve_commit_sha(payload)
        if not commit_sha:
            return self._skip("no_commit_reference", "no commit SHA", metadata)
        metadata["commit"] = commit_sha

        try:
            with self.logger.timed_operation("fetch_tasks", commit=commit_sha[:7]):
                new = self.task_source.fetch_snapshot(repo, commit_sha, tasks_file)
        except FetchError as exc:
            info = classify_error(exc)
            self.logger.log_error(
                "task board fetch failed", error=info.message, stage=exc.stage, category=info.category
            )
            return PipelineResult(
                deliver=True,
                outcome=Outcome.ERROR,
                message=format_fetch_error(redact(str(exc))),
                reason="fetch_failed",
                metadata={**metadata, "stage": exc.stage, "category": info.category},
            )
        self.logger.info("fetched task board", tasks=len(new))

        self.store.write_tasks_file(new)

        events = diff_snapshots(old, new)
        counts = {f"{kind}_count": n for kind, n in summarize_events(events).items()}
        self.logger.log_operation("diff_computed", count=len(events), **counts)
        if not events:
            return self._skip("no_changes", "no task changes detected", metadata)

        if self.store.write_snapshot(new):
            self.logger.debug("snapshot updated")

        in_progress = collect_in_progress(events, new)
        actor = resolve_actor(payload)
        metadata.update(
            {
                "events": [e.to_dict() for e in events],
                "in_progress": [t.ref().to_dict() for t in in_progress],
                "processed": True,
            }
        )

        if in_progress:
            metadata.update(self._dispatch(actor, in_progress, new))
        else:
            sent = self._deliver_notification(format_diff_summary(events, actor), "diff_summary")
            metadata["notified"] = sent.ok

        return PipelineResult(deliver=False, outcome=Outcome.PROCESSED, metadata=metadata)

    def _dispatch(self, actor: str, in_progress: list[Task], snapshot: Snapshot) -> dict[str, Any]:
        epic_info = resolve_epic(in_progress, snapshot.tasks)
        if epic_info is not None:
            self.logger.log_operation(
                "epic_detected", epic_id=epic_info.epic_task.id, children=epic_info.child_count
            )

        start = self._deliver_notification(
            format_start_notification(actor, in_progress, epic_info), "start_notification"
        )

        plan = plan_dispatch(in_progress, snapshot, self.config, epic_info)
        self.logger.log_operation(
            "agent_wake",
            session_key=plan.session_key,
            timeout_seconds=plan.timeout_seconds,
            tasks=len(in_progress),
            epic=epic_info is not None,
        )
        try:
            woke = self.dispatcher.wake(plan.work_order, plan.session_key, plan.timeout_seconds)
        except Exception as exc:  # sinks report failures; this guards third-party ones
            woke = DeliveryResult.failure(str(exc))
        if not woke.ok:
            self.logger.log_error("agent wake failed", error=woke.error, status=woke.status)

        return {
            "notified": start.ok,
            "dispatched": woke.ok,
            "dispatch": {
                "session_key": plan.session_key,
                "timeout_seconds": plan.timeout_seconds,
                "epic": epic_info.epic_task.id if epic_info else None,
                "children": [t.id for t in epic_info.child_tasks] if epic_info else [],
            },
        }

    def _deliver_notification(self, text: str, kind: str) -> DeliveryResult:
        try:
            result = self.notifier.send(text)
        except Exception as exc:  # sinks report failures; this guards third-party ones
            result = DeliveryResult.failure(str(exc))
        if result.ok:
            self.logger.log_operation("notification_sent", kind=kind)
        else:
            self.logger.warning("notification not delivered", kind=kind, error=result.error)
        return result


__all__ = [
    "Outcome",
    "SignatureMode",
    "TaskSource",
    "SnapshotStore",
    "Notifier",
    "AgentDispatcher",
    "SignatureVerifier",
    "WebhookRequest",
    "PipelineResult",
    "DispatchPlan",
    "resolve_signature_mode",
    "is_main_branch_ref",
    "touched_files",
    "touches_path",
    "resolve_commit_sha",
    "resolve_actor",
    "collect_in_progress",
    "plan_dispatch",
    "WebhookPipeline",
]
