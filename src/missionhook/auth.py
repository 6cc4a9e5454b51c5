"""GitHub token discovery for the Git Data API reads.

Lookup order: environment variables (after optionally loading a ``.env``
file), then the ``oauth_token`` stored by the GitHub CLI in ``hosts.yml``.
An empty result means requests go out unauthenticated, which still works for
public repositories.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .logging import get_logger

TOKEN_ENV_VARS = (
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "GITHUB_ACCESS_TOKEN",
    "GH_ACCESS_TOKEN",
    "GITHUB_PAT",
)
DEFAULT_GH_HOST = "github.com"


@dataclass
class TokenResolver:
    hosts_file: Path
    load_env_file: bool = True
    dotenv_path: str | None = None
    host: str = DEFAULT_GH_HOST

    def __post_init__(self) -> None:
        self._dotenv_loaded = False
        if self.load_env_file:
            self._load_dotenv()

    def _load_dotenv(self) -> None:
        candidates = [self.dotenv_path] if self.dotenv_path else ['.env', '.env.local']
        for location in candidates:
            if location and Path(location).exists():
                # Variables already exported in the process environment win.
                load_dotenv(location, override=False)
                self._dotenv_loaded = True
                get_logger().debug("loaded environment file", path=location)
                return

    def from_environment(self) -> str | None:
        for var in TOKEN_ENV_VARS:
            token = os.getenv(var)
            if token:
                get_logger().debug("GitHub token found in environment", source=var)
                return token
        return None

    def from_gh_hosts(self) -> str | None:
        if not self.hosts_file.exists():
            return None
        try:
            data: Any = yaml.safe_load(self.hosts_file.read_text(encoding='utf-8'))
        except (OSError, yaml.YAMLError) as exc:
            get_logger().debug("gh hosts file unreadable", error=str(exc))
            return None
        if not isinstance(data, dict):
            return None
        entry = data.get(self.host)
        if not isinstance(entry, dict):
            return None
        token = entry.get('oauth_token')
        if isinstance(token, str) and token:
            return token
        # Newer gh versions nest credentials per user.
        users = entry.get('users')
        user = entry.get('user')
        if isinstance(users, dict) and isinstance(user, str):
            user_entry = users.get(user)
            if isinstance(user_entry, dict):
                nested = user_entry.get('oauth_token')
                if isinstance(nested, str) and nested:
                    return nested
        return None

    def resolve(self) -> str:
        return self.from_environment() or self.from_gh_hosts() or ''


__all__ = ["TOKEN_ENV_VARS", "TokenResolver"]
