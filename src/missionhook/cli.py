"""missionhook CLI.

Subcommands:
  handle      -> run one push payload through the webhook pipeline (result JSON)
  diff        -> compare two task-board snapshots
  work-order  -> render the agent work order for task ids in a snapshot
  config      -> show the effective configuration with credentials masked
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

import yaml

from .config import MissionConfig, redacted_view
from .diffing import diff_snapshots
from .epics import resolve_epic
from .errors import ConfigError, SnapshotReadError
from .formatting import format_diff_summary
from .logging import get_logger
from .models import Snapshot, Task
from .observability import configure_telemetry
from .orchestrator import Outcome, WebhookRequest, plan_dispatch, resolve_signature_mode
from .runtime import build_pipeline, execute_command, prepare_config, setup_logging
from .signature import SIGNATURE_HEADER, load_webhook_secret
from .snapshot_store import load_snapshot

CONFIG_HELP = "Configuration file (default: $MISSIONHOOK_CONFIG or ~/.missionhook/config.yaml)"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="missionhook", description="GitHub push webhook for a JSON task board"
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational logging (env: MISSIONHOOK_QUIET=1)",
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    ph = sub.add_parser("handle", help="Process a push webhook payload")
    ph.add_argument("--config", help=CONFIG_HELP)
    ph.add_argument("--payload", required=True, help="Payload JSON file ('-' reads stdin)")
    ph.add_argument("--signature", help=f"Value of the {SIGNATURE_HEADER} header")
    ph.add_argument(
        "--header",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Extra request header (can be supplied multiple times)",
    )

    pd = sub.add_parser("diff", help="Diff two task-board snapshots")
    pd.add_argument("old", type=Path)
    pd.add_argument("new", type=Path)
    pd.add_argument("--json", action="store_true", help="Emit events as JSON")
    pd.add_argument("--actor", default="cli", help="Actor named in the summary header")

    pw = sub.add_parser("work-order", help="Render the agent work order for tasks")
    pw.add_argument("--config", help=CONFIG_HELP)
    pw.add_argument("--snapshot", required=True, type=Path, help="Task-board JSON file")
    pw.add_argument("task_ids", nargs="+", metavar="TASK_ID")
    pw.add_argument("--json", action="store_true", help="Include session key and timeout")

    pc = sub.add_parser("config", help="Show effective configuration")
    pc.add_argument("--config", help=CONFIG_HELP)
    pc.add_argument("--json", action="store_true")
    return p


def _require_cfg(cfg: MissionConfig | None) -> MissionConfig:
    if cfg is None:  # pragma: no cover - prepare_config loads it for these commands
        raise RuntimeError("Configuration required for this command")
    return cfg


def _parse_headers(pairs: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid header (expected KEY=VALUE): {pair}")
        headers[key.strip()] = value.strip()
    return headers


def _read_payload(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    return Path(source).read_bytes()


def _cmd_handle(cfg: MissionConfig, args: argparse.Namespace) -> int:
    try:
        raw = _read_payload(args.payload)
        payload = json.loads(raw)
        headers = _parse_headers(args.header)
    except (OSError, ValueError) as exc:
        print(f"[missionhook] {exc}", file=sys.stderr)
        return 2
    if not isinstance(payload, dict):
        print("[missionhook] payload must be a JSON object", file=sys.stderr)
        return 2
    if args.signature:
        headers[SIGNATURE_HEADER] = args.signature
    try:
        pipeline = build_pipeline(cfg)
    except ConfigError as exc:
        print(f"[missionhook] {exc}", file=sys.stderr)
        return 2
    result = pipeline.handle(WebhookRequest(payload=payload, headers=headers, raw_body=raw))
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 1 if result.outcome is Outcome.ERROR else 0


def _load_for_cli(path: Path) -> Snapshot | None:
    try:
        return load_snapshot(path)
    except SnapshotReadError as exc:
        print(f"[missionhook] {exc}", file=sys.stderr)
        return None


def _cmd_diff(args: argparse.Namespace) -> int:
    old = _load_for_cli(args.old)
    new = _load_for_cli(args.new)
    if old is None or new is None:
        return 1
    events = diff_snapshots(old, new)
    if args.json:
        print(json.dumps([e.to_dict() for e in events], indent=2, ensure_ascii=False))
    elif events:
        print(format_diff_summary(events, args.actor))
    elif not args.quiet and not os.environ.get("MISSIONHOOK_QUIET"):
        print("No task changes detected")
    return 0


def _cmd_work_order(cfg: MissionConfig, args: argparse.Namespace) -> int:
    snapshot = _load_for_cli(args.snapshot)
    if snapshot is None:
        return 1
    tasks: list[Task] = []
    for task_id in args.task_ids:
        task = snapshot.find(task_id)
        if task is None:
            print(f"[missionhook] unknown task id: {task_id}", file=sys.stderr)
            return 1
        tasks.append(task)
    plan = plan_dispatch(tasks, snapshot, cfg, resolve_epic(tasks, snapshot.tasks))
    if args.json:
        out = {
            "message": plan.work_order,
            "session_key": plan.session_key,
            "timeout_seconds": plan.timeout_seconds,
            "epic": plan.epic.epic_task.id if plan.epic else None,
        }
        print(json.dumps(out, indent=2, ensure_ascii=False))
    else:
        print(plan.work_order)
    return 0


def _cmd_config(cfg: MissionConfig, args: argparse.Namespace) -> int:
    view = redacted_view(cfg)
    try:
        has_secret = load_webhook_secret(cfg.secrets.webhook_secret_file) is not None
    except ConfigError as exc:
        print(f"[missionhook] {exc}", file=sys.stderr)
        return 2
    view["signature_mode"] = resolve_signature_mode(
        require_signature=cfg.secrets.require_signature, has_secret=has_secret
    ).value
    if args.json:
        print(json.dumps(view, indent=2))
    else:
        print(yaml.safe_dump(view, sort_keys=False), end="")
    return 0


def _build_handlers(args: argparse.Namespace, cfg: MissionConfig | None) -> dict[str, Any]:
    return {
        "handle": lambda: _cmd_handle(_require_cfg(cfg), args),
        "diff": lambda: _cmd_diff(args),
        "work-order": lambda: _cmd_work_order(_require_cfg(cfg), args),
        "config": lambda: _cmd_config(_require_cfg(cfg), args),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "quiet", False) and os.environ.get("MISSIONHOOK_QUIET") == "1":
        args.quiet = True
    try:
        cfg = prepare_config(args)
    except ConfigError as exc:
        print(f"[missionhook] {exc}", file=sys.stderr)
        return 2
    setup_logging(cfg, quiet=args.quiet)
    exporter = os.environ.get("MISSIONHOOK_OTEL_EXPORTER")
    if exporter:
        configure_telemetry(
            service_name=os.environ.get("MISSIONHOOK_SERVICE_NAME", "missionhook-cli"),
            exporter="otlp" if exporter.lower() == "otlp" else "console",
            endpoint=os.environ.get("MISSIONHOOK_OTEL_ENDPOINT"),
        )
    handlers = _build_handlers(args, cfg)
    handler = handlers.get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 1
    get_logger().debug("dispatching command", command=args.cmd)
    return execute_command(handler, args, cfg, args.cmd)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
