from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

import requests

from .errors import FetchError
from .models import RepoInfo, Snapshot

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "missionhook-rest/0.3.0"
API_VERSION = "2022-11-28"
HTTP_ERROR_STATUS = 400


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass
class GitHubRestClient:
    """Read-only Git Data API client (commits, trees, blobs).

    Reading by object sha instead of ``contents?ref=main`` sidesteps the CDN
    caching GitHub applies to branch-tip reads right after a push.
    """

    repo: str
    token: str = ""
    base_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        if self.token:
            self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("X-GitHub-Api-Version", API_VERSION)
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )
        response = self._session.request(
            method,
            url,
            params=params,
            headers=self._session.headers,
            timeout=self.timeout,
        )
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        return response.json()

    def get_commit(self, sha: str) -> dict[str, Any]:
        data = self._request("GET", f"/repos/{self.repo}/git/commits/{sha}")
        return data if isinstance(data, dict) else {}

    def get_tree(self, sha: str, *, recursive: bool = True) -> dict[str, Any]:
        params = {"recursive": "1"} if recursive else None
        data = self._request("GET", f"/repos/{self.repo}/git/trees/{sha}", params=params)
        return data if isinstance(data, dict) else {}

    def get_blob(self, sha: str) -> dict[str, Any]:
        data = self._request("GET", f"/repos/{self.repo}/git/blobs/{sha}")
        return data if isinstance(data, dict) else {}


def decode_blob(blob: dict[str, Any]) -> str:
    content = blob.get("content")
    if not isinstance(content, str):
        raise ValueError("blob has no content")
    encoding = blob.get("encoding", "base64")
    if encoding != "base64":
        return content
    # GitHub wraps base64 payloads at 60 columns.
    return base64.b64decode(content.replace("\n", ""), validate=True).decode("utf-8")


def normalize_repo_path(path: str) -> str:
    """Repository-relative POSIX path (``./data/tasks.json`` -> ``data/tasks.json``)."""
    return str(PurePosixPath(path.lstrip("/"))).removeprefix("./")


def find_tree_entry(tree: dict[str, Any], path: str) -> dict[str, Any] | None:
    target = normalize_repo_path(path)
    entries = tree.get("tree")
    if not isinstance(entries, list):
        return None
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        if entry.get("path") == target and entry.get("type", "blob") == "blob":
            return entry
    return None


@dataclass
class GitHubTaskSource:
    """Materialize the task board as of a commit: commit -> tree -> blob."""

    token: str = ""
    api_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    session: requests.Session | None = None

    def client_for(self, repo: RepoInfo) -> GitHubRestClient:
        return GitHubRestClient(
            repo=repo.full_name,
            token=self.token,
            base_url=self.api_url,
            timeout=self.timeout,
            session=self.session,
        )

    def fetch_snapshot(self, repo: RepoInfo, commit_sha: str, path: str) -> Snapshot:
        if not repo.full_name:
            raise FetchError("repository full_name missing from payload", stage="repository")
        path = normalize_repo_path(path)
        client = self.client_for(repo)

        commit = self._step("commit", lambda: client.get_commit(commit_sha))
        tree_any = commit.get("tree")
        tree_sha = tree_any.get("sha") if isinstance(tree_any, dict) else None
        if not tree_sha:
            raise FetchError(f"commit {commit_sha} has no tree", stage="commit")

        tree = self._step("tree", lambda: client.get_tree(str(tree_sha)))
        entry = find_tree_entry(tree, path)
        if entry is None:
            raise FetchError(f"{path} not found in tree", stage="tree")

        blob = self._step("blob", lambda: client.get_blob(str(entry.get("sha"))))
        try:
            raw: Any = json.loads(decode_blob(blob))
        except (ValueError, binascii.Error, UnicodeDecodeError) as exc:
            raise FetchError(
                f"{path} at {commit_sha[:7]} is not valid JSON: {exc}", stage="decode"
            ) from exc
        if not isinstance(raw, dict):
            raise FetchError(f"{path} at {commit_sha[:7]} is not a JSON object", stage="decode")
        return Snapshot.from_dict(raw)

    @staticmethod
    def _step(stage: str, call: Callable[[], dict[str, Any]]) -> dict[str, Any]:
        try:
            result = call()
        except GitHubAPIError as exc:
            raise FetchError(
                f"{stage.capitalize()} fetch failed: {exc.status}", stage=stage, status=exc.status
            ) from exc
        except (requests.RequestException, ValueError) as exc:
            raise FetchError(f"{stage.capitalize()} fetch failed: {exc}", stage=stage) from exc
        return result


__all__ = [
    "GitHubAPIError",
    "GitHubRestClient",
    "GitHubTaskSource",
    "decode_blob",
    "find_tree_entry",
    "normalize_repo_path",
]
