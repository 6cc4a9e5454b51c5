from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigError

CONFIG_ENV_VAR = "MISSIONHOOK_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".missionhook" / "config.yaml"

DEFAULT_GATEWAY_URL = "http://127.0.0.1:18789"
DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_SLACK_API_URL = "https://slack.com/api"


@dataclass(frozen=True)
class GatewayConfig:
    url: str = DEFAULT_GATEWAY_URL
    hook_token: str = ""


@dataclass(frozen=True)
class WorkspaceConfig:
    path: Path = field(default_factory=lambda: Path.home() / "clawd")
    tasks_file: str = "data/tasks.json"
    snapshot_file: str = "data/.tasks-snapshot.json"
    debug_log: str = "data/.webhook-debug.log"

    @property
    def tasks_path(self) -> Path:
        return self.path / self.tasks_file

    @property
    def snapshot_path(self) -> Path:
        return self.path / self.snapshot_file

    @property
    def debug_log_path(self) -> Path:
        return self.path / self.debug_log


@dataclass(frozen=True)
class SlackConfig:
    bot_token: str = ""
    channel: str = ""
    api_url: str = DEFAULT_SLACK_API_URL

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.channel)


@dataclass(frozen=True)
class SecretsConfig:
    webhook_secret_file: Path = field(
        default_factory=lambda: Path.home() / ".missionhook" / "secrets" / "github-webhook-secret"
    )
    github_token_file: Path = field(
        default_factory=lambda: Path.home() / ".config" / "gh" / "hosts.yml"
    )
    # When false, a request without signature (or a missing secret file) is accepted.
    require_signature: bool = False


@dataclass(frozen=True)
class AgentConfig:
    name: str = "MissionControl"
    session_prefix: str = "hook:mission-control"
    default_timeout: int = 300
    epic_timeout_base: int = 600
    epic_timeout_per_child: int = 300

    def session_key(self, task_id: str) -> str:
        return f"{self.session_prefix}:{task_id}"

    def epic_timeout(self, child_count: int) -> int:
        return self.epic_timeout_base + child_count * self.epic_timeout_per_child


@dataclass(frozen=True)
class GitHubConfig:
    api_url: str = DEFAULT_GITHUB_API_URL
    http_timeout: float = 30.0


@dataclass(frozen=True)
class LoggingConfig:
    json_enabled: bool = False
    level: str = "INFO"
    file_enabled: bool = True


@dataclass(frozen=True)
class EnvironmentConfig:
    load_dotenv: bool = True
    dotenv_path: str | None = None


@dataclass(frozen=True)
class MissionConfig:
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    secrets: SecretsConfig = field(default_factory=SecretsConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    environment: EnvironmentConfig = field(default_factory=EnvironmentConfig)
    source_file: Path | None = None


def _resolve_env_var(value: Any, env_var_name: str | None = None) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        env_name = env_var_name or value[1:]  # Remove $ prefix
        return os.getenv(env_name, value)  # Fallback to original if not found
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name, {}) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Configuration section '{name}' must be a mapping")
    return {k: _resolve_env_var(v) for k, v in section.items()}


def _path(value: Any, default: Path) -> Path:
    if value in (None, ""):
        return default
    return Path(os.path.expanduser(str(value)))


_TRUE_STRINGS = frozenset({'1', 'true', 'yes', 'on'})
_FALSE_STRINGS = frozenset({'0', 'false', 'no', 'off', ''})


def _bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f'expected a boolean, got {value!r}')
    return bool(value)


def _env_defaults() -> dict[str, dict[str, Any]]:
    """Defaults that can be supplied through the environment (file values win)."""
    env: dict[str, dict[str, Any]] = {
        'gateway': {
            'url': os.getenv('MISSIONHOOK_GATEWAY_URL'),
            'hook_token': os.getenv('MISSIONHOOK_HOOK_TOKEN'),
        },
        'workspace': {'path': os.getenv('MISSIONHOOK_WORKSPACE')},
        'slack': {
            'bot_token': os.getenv('SLACK_BOT_TOKEN'),
            'channel': os.getenv('SLACK_CHANNEL'),
        },
    }
    return {name: {k: v for k, v in vals.items() if v} for name, vals in env.items()}


def default_config_path() -> Path:
    override = os.getenv(CONFIG_ENV_VAR)
    return Path(os.path.expanduser(override)) if override else DEFAULT_CONFIG_PATH


def _read_raw(p: Path) -> dict[str, Any]:
    try:
        loaded = yaml.safe_load(p.read_text(encoding='utf-8'))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f'Failed to parse configuration {p}: {exc}') from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f'Configuration root must be a mapping: {p}')
    return cast(dict[str, Any], loaded)


def load_config(path: str | Path | None = None) -> MissionConfig:
    """Load configuration layering file values over environment over defaults.

    An explicit ``path`` must exist. Without one, ``$MISSIONHOOK_CONFIG`` or
    ``~/.missionhook/config.yaml`` is read when present; otherwise the
    defaults (plus environment) are returned.
    """
    if path is not None:
        p = Path(path)
        if not p.exists():
            raise ConfigError(f'Configuration file not found: {p}')
    else:
        p = default_config_path()
    raw = _read_raw(p) if p.exists() else {}
    source = p if p.exists() else None

    env = _env_defaults()
    merged = {
        name: {**env.get(name, {}), **_section(raw, name)}
        for name in (
            'gateway',
            'workspace',
            'slack',
            'secrets',
            'agent',
            'github',
            'logging',
            'environment',
        )
    }
    gw, ws, sl = merged['gateway'], merged['workspace'], merged['slack']
    sec, ag, gh = merged['secrets'], merged['agent'], merged['github']
    lg, envc = merged['logging'], merged['environment']
    defaults_ws = WorkspaceConfig()
    defaults_sec = SecretsConfig()
    try:
        return MissionConfig(
            gateway=GatewayConfig(
                url=str(gw.get('url', DEFAULT_GATEWAY_URL)),
                hook_token=str(gw.get('hook_token', '') or ''),
            ),
            workspace=WorkspaceConfig(
                path=_path(ws.get('path'), defaults_ws.path),
                tasks_file=str(ws.get('tasks_file', defaults_ws.tasks_file)),
                snapshot_file=str(ws.get('snapshot_file', defaults_ws.snapshot_file)),
                debug_log=str(ws.get('debug_log', defaults_ws.debug_log)),
            ),
            slack=SlackConfig(
                bot_token=str(sl.get('bot_token', '') or ''),
                channel=str(sl.get('channel', '') or ''),
                api_url=str(sl.get('api_url', DEFAULT_SLACK_API_URL)),
            ),
            secrets=SecretsConfig(
                webhook_secret_file=_path(
                    sec.get('webhook_secret_file'), defaults_sec.webhook_secret_file
                ),
                github_token_file=_path(
                    sec.get('github_token_file'), defaults_sec.github_token_file
                ),
                require_signature=_bool(sec.get('require_signature'), False),
            ),
            agent=AgentConfig(
                name=str(ag.get('name', 'MissionControl')),
                session_prefix=str(ag.get('session_prefix', 'hook:mission-control')),
                default_timeout=int(ag.get('default_timeout', 300)),
                epic_timeout_base=int(ag.get('epic_timeout_base', 600)),
                epic_timeout_per_child=int(ag.get('epic_timeout_per_child', 300)),
            ),
            github=GitHubConfig(
                api_url=str(gh.get('api_url', DEFAULT_GITHUB_API_URL)),
                http_timeout=float(gh.get('http_timeout', 30.0)),
            ),
            logging=LoggingConfig(
                json_enabled=_bool(lg.get('json_enabled'), False),
                level=str(lg.get('level', 'INFO')),
                file_enabled=_bool(lg.get('file_enabled'), True),
            ),
            environment=EnvironmentConfig(
                load_dotenv=_bool(envc.get('load_dotenv'), True),
                dotenv_path=envc.get('dotenv_path'),
            ),
            source_file=source,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f'Invalid configuration value in {p}: {exc}') from exc


def redacted_view(cfg: MissionConfig) -> dict[str, Any]:
    """Return a JSON-friendly view of ``cfg`` with credentials masked."""

    def mask(value: str) -> str:
        return '<set>' if value else '<unset>'

    return {
        'source_file': str(cfg.source_file) if cfg.source_file else None,
        'gateway': {'url': cfg.gateway.url, 'hook_token': mask(cfg.gateway.hook_token)},
        'workspace': {
            'path': str(cfg.workspace.path),
            'tasks_file': cfg.workspace.tasks_file,
            'snapshot_file': cfg.workspace.snapshot_file,
            'debug_log': cfg.workspace.debug_log,
        },
        'slack': {
            'bot_token': mask(cfg.slack.bot_token),
            'channel': cfg.slack.channel,
            'api_url': cfg.slack.api_url,
        },
        'secrets': {
            'webhook_secret_file': str(cfg.secrets.webhook_secret_file),
            'github_token_file': str(cfg.secrets.github_token_file),
            'require_signature': cfg.secrets.require_signature,
        },
        'agent': {
            'name': cfg.agent.name,
            'session_prefix': cfg.agent.session_prefix,
            'default_timeout': cfg.agent.default_timeout,
            'epic_timeout_base': cfg.agent.epic_timeout_base,
            'epic_timeout_per_child': cfg.agent.epic_timeout_per_child,
        },
        'github': {'api_url': cfg.github.api_url, 'http_timeout': cfg.github.http_timeout},
        'logging': {
            'json_enabled': cfg.logging.json_enabled,
            'level': cfg.logging.level,
            'file_enabled': cfg.logging.file_enabled,
        },
    }


__all__ = [
    "ConfigError",
    "MissionConfig",
    "GatewayConfig",
    "WorkspaceConfig",
    "SlackConfig",
    "SecretsConfig",
    "AgentConfig",
    "GitHubConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    "default_config_path",
    "load_config",
    "redacted_view",
]
