"""Pytest configuration for missionhook tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`).
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Subprocesses (`python -m missionhook`) also need the in-repo package.
py_path = os.environ.get("PYTHONPATH", "")
parts = [p for p in py_path.split(os.pathsep) if p]
if str(SRC) not in parts:
    parts.insert(0, str(SRC))
    os.environ["PYTHONPATH"] = os.pathsep.join(parts)

_ENV_VARS = (
    "MISSIONHOOK_CONFIG",
    "MISSIONHOOK_GATEWAY_URL",
    "MISSIONHOOK_HOOK_TOKEN",
    "MISSIONHOOK_WORKSPACE",
    "MISSIONHOOK_QUIET",
    "MISSIONHOOK_OTEL_EXPORTER",
    "SLACK_BOT_TOKEN",
    "SLACK_CHANNEL",
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "GITHUB_ACCESS_TOKEN",
    "GH_ACCESS_TOKEN",
    "GITHUB_PAT",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the developer's own config, tokens and home directory out of tests."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("MISSIONHOOK_CONFIG", str(tmp_path / "absent-config.yaml"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
