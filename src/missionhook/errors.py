"""Error taxonomy & redaction.

Exceptions raised by the collaborators around the webhook pipeline, plus two
helpers used wherever an error reaches a log line or a user-visible message:

- classify_error(exc) -> ErrorInfo
- redact(text) -> str

Only FetchError aborts a pipeline run; the others are caught close to where
they are raised and degrade to an empty snapshot or a failed delivery.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gh[ousr]_[A-Za-z0-9]{20,}"),  # GitHub app / oauth tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"xox[abpr]-[A-Za-z0-9-]{10,}"),  # Slack tokens
    re.compile(r"(?i)(authorization:\s*bearer\s+)\S+"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class MissionHookError(RuntimeError):
    """Base class for errors raised by missionhook collaborators."""


class ConfigError(MissionHookError):
    pass


class SnapshotReadError(MissionHookError):
    """Raised when a snapshot file is missing or cannot be parsed.

    ``kind`` is ``"not_found"`` or ``"parse"``; both are recoverable to an
    empty snapshot by the caller.
    """

    def __init__(self, message: str, *, kind: str, path: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.path = path


class FetchError(MissionHookError):
    """Raised when the task board cannot be read from the remote repository."""

    def __init__(self, message: str, *, stage: str, status: int | None = None):
        super().__init__(message)
        self.stage = stage
        self.status = status


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace token-like substrings with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        if pat.groups:
            redacted = pat.sub(lambda m: m.group(1) + _REDACTION_PLACEHOLDER, redacted)
        else:
            redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def _status_of(exc: BaseException) -> int | None:
    status = getattr(exc, "status", None)
    return status if isinstance(status, int) else None


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    HTTP status codes carried by FetchError / GitHubAPIError win over message
    keywords; keywords cover transport errors that never produced a response.
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    kind = exc.__class__.__name__
    status = _status_of(exc)
    details = {"status": status} if status is not None else None

    if status == 404 or "not found" in low:
        return ErrorInfo("github.not_found", redact(msg), kind, details=details)
    if status in (401, 403) and "rate limit" not in low:
        return ErrorInfo("github.auth", redact(msg), kind, details=details)
    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", redact(msg), kind, transient=True, details=details)
    if any(k in low for k in ("timeout", "timed out", "connection", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), kind, transient=True, details=details)
    if any(k in low for k in ("json", "base64", "decode", "yaml")):
        return ErrorInfo("parse", redact(msg), kind, details=details)
    return ErrorInfo("generic", redact(msg), kind, details=details)


__all__ = [
    "MissionHookError",
    "ConfigError",
    "SnapshotReadError",
    "FetchError",
    "ErrorInfo",
    "classify_error",
    "redact",
]
