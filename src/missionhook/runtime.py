"""Runtime helpers wiring configuration into a ready-to-run pipeline."""

from __future__ import annotations

import time
from collections.abc import Callable
from functools import partial
from typing import Any, Protocol

import requests

from .auth import TokenResolver
from .config import MissionConfig, load_config
from .github_rest import GitHubTaskSource
from .logging import StructuredLogger, configure_logging, get_logger
from .orchestrator import WebhookPipeline
from .signature import load_webhook_secret, verify_signature
from .sinks import AgentGateway, SlackNotifier
from .snapshot_store import WorkspaceStore


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def build_pipeline(
    cfg: MissionConfig,
    *,
    session: requests.Session | None = None,
    token: str | None = None,
) -> WebhookPipeline:
    """Assemble a WebhookPipeline from configuration.

    ``session`` is shared by the GitHub, Slack and gateway clients; tests pass
    a stub. ``token`` bypasses environment / gh CLI discovery.
    """
    if token is None:
        token = TokenResolver(
            hosts_file=cfg.secrets.github_token_file,
            load_env_file=cfg.environment.load_dotenv,
            dotenv_path=cfg.environment.dotenv_path,
        ).resolve()
    secret = load_webhook_secret(cfg.secrets.webhook_secret_file)
    timeout = cfg.github.http_timeout
    return WebhookPipeline(
        cfg,
        task_source=GitHubTaskSource(
            token=token, api_url=cfg.github.api_url, timeout=timeout, session=session
        ),
        store=WorkspaceStore(cfg.workspace.tasks_path, cfg.workspace.snapshot_path),
        notifier=SlackNotifier(cfg.slack, timeout=timeout, session=session),
        dispatcher=AgentGateway(
            cfg.gateway, cfg.agent, slack_channel=cfg.slack.channel, timeout=timeout, session=session
        ),
        verifier=partial(verify_signature, secret=secret) if secret else None,
    )


def prepare_config(
    args: Any, *, loader: Callable[[str | None], MissionConfig] = load_config
) -> MissionConfig | None:
    """Load MissionConfig for the given argparse namespace (``diff`` needs none)."""
    if getattr(args, "cmd", None) == "diff":
        return None
    if not hasattr(args, "config"):
        raise AttributeError("Command namespace is missing 'config' attribute")
    return loader(args.config)


def setup_logging(cfg: MissionConfig | None, *, quiet: bool = False) -> StructuredLogger:
    if cfg is None:
        return configure_logging(level="WARNING" if quiet else "INFO")
    level = "WARNING" if quiet else cfg.logging.level
    log_file = cfg.workspace.debug_log_path if cfg.logging.file_enabled else None
    return configure_logging(json_logging=cfg.logging.json_enabled, level=level, log_file=log_file)


def execute_command(
    handler: _HandlerCallable, args: Any, cfg: MissionConfig | None, command: str
) -> int:
    """Run a command handler, logging its duration and exit code."""
    start = time.monotonic()
    exit_code = 1
    try:
        result = handler()
        exit_code = int(result) if result is not None else 0
    except SystemExit as exc:  # pragma: no cover - allow propagation
        exit_code = int(exc.code or 0)
        raise
    finally:
        get_logger().log_performance(
            f"command_{command}",
            (time.monotonic() - start) * 1000,
            exit_code=exit_code,
            configured=cfg is not None and cfg.source_file is not None,
        )
    return exit_code


__all__ = ["build_pipeline", "prepare_config", "setup_logging", "execute_command"]
