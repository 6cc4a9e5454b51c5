from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import SnapshotReadError
from .logging import get_logger
from .models import Snapshot


def load_snapshot(path: Path) -> Snapshot:
    """Read a JSON snapshot, raising SnapshotReadError(kind=not_found|parse)."""
    if not path.exists():
        raise SnapshotReadError(f"{path} does not exist", kind="not_found", path=str(path))
    try:
        raw: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SnapshotReadError(f"{path}: {exc}", kind="parse", path=str(path)) from exc
    if not isinstance(raw, dict):
        raise SnapshotReadError(f"{path}: root is not an object", kind="parse", path=str(path))
    return Snapshot.from_dict(raw)


def persist_snapshot(path: Path, snapshot: Snapshot) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    payload = json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)
    tmp.write_text(payload + "\n", encoding="utf-8")
    tmp.replace(path)


@dataclass
class WorkspaceStore:
    """Local task-board file plus the snapshot of the last processed push.

    Reads degrade to an empty snapshot and writes report success as a boolean;
    neither raises.
    """

    tasks_path: Path
    snapshot_path: Path

    def load_baseline(self) -> Snapshot:
        logger = get_logger()
        if self.snapshot_path.exists():
            try:
                snapshot = load_snapshot(self.snapshot_path)
            except SnapshotReadError as exc:
                logger.log_error("snapshot read failed", error=str(exc), kind=exc.kind)
                return Snapshot.empty()
            logger.info("loaded snapshot", path=str(self.snapshot_path), tasks=len(snapshot))
            return snapshot
        if self.tasks_path.exists():
            try:
                snapshot = load_snapshot(self.tasks_path)
            except SnapshotReadError as exc:
                logger.log_error("task file read failed", error=str(exc), kind=exc.kind)
                return Snapshot.empty()
            logger.info("using current task file as baseline", tasks=len(snapshot))
            return snapshot
        logger.info("no baseline found; starting from empty snapshot")
        return Snapshot.empty()

    def _write(self, path: Path, snapshot: Snapshot, label: str) -> bool:
        try:
            persist_snapshot(path, snapshot)
        except OSError as exc:
            get_logger().log_error(f"{label} write failed", error=str(exc), path=str(path))
            return False
        get_logger().debug(f"{label} written", path=str(path), tasks=len(snapshot))
        return True

    def write_tasks_file(self, snapshot: Snapshot) -> bool:
        return self._write(self.tasks_path, snapshot, "task file")

    def write_snapshot(self, snapshot: Snapshot) -> bool:
        return self._write(self.snapshot_path, snapshot, "snapshot")


__all__ = ["load_snapshot", "persist_snapshot", "WorkspaceStore"]
