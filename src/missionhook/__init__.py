"""missionhook - GitHub push webhook for a JSON task board.

A push that touches ``data/tasks.json`` on the main branch is diffed against
the last processed snapshot. Plain changes become a Slack summary; tasks moved
to ``in_progress`` produce a start notification and a work order handed to the
automation agent gateway (epics expand into their child tickets).

from missionhook import load_config, build_pipeline, WebhookRequest

cfg = load_config()
result = build_pipeline(cfg).handle(WebhookRequest(payload=payload, headers=headers, raw_body=body))
print(result.to_dict())
"""

from __future__ import annotations

from .config import MissionConfig, load_config
from .diffing import diff_snapshots
from .models import Snapshot, Task
from .orchestrator import PipelineResult, WebhookPipeline, WebhookRequest
from .runtime import build_pipeline

__version__ = "0.3.0"

__all__ = [
    "MissionConfig",
    "load_config",
    "diff_snapshots",
    "Snapshot",
    "Task",
    "PipelineResult",
    "WebhookPipeline",
    "WebhookRequest",
    "build_pipeline",
    "__version__",
]
