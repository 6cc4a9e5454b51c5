"""Outbound sinks: Slack chat notifications and the agent gateway wake hook.

Both report a DeliveryResult instead of raising so an outage on either side
never aborts the webhook pipeline or causes GitHub to redeliver the push.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests

from .config import AgentConfig, GatewayConfig, SlackConfig
from .errors import redact

USER_AGENT = "missionhook/0.3.0"


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    status: int | None = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str, status: int | None = None) -> DeliveryResult:
        return cls(ok=False, status=status, error=redact(error))


def _json_or_empty(response: requests.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


@dataclass
class SlackNotifier:
    config: SlackConfig
    timeout: float = 30.0
    session: requests.Session | None = None

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()

    def send(self, text: str) -> DeliveryResult:
        if not self.config.enabled:
            return DeliveryResult.failure("slack not configured")
        try:
            response = self._session.post(
                f"{self.config.api_url.rstrip('/')}/chat.postMessage",
                headers={
                    "Authorization": f"Bearer {self.config.bot_token}",
                    "Content-Type": "application/json; charset=utf-8",
                    "User-Agent": USER_AGENT,
                },
                json={"channel": self.config.channel, "text": text, "mrkdwn": True},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            return DeliveryResult.failure(str(exc))
        body = _json_or_empty(response)
        # Slack answers 200 with ok=false for application-level errors.
        if response.status_code >= 400 or not body.get("ok"):
            return DeliveryResult.failure(
                str(body.get("error") or f"HTTP {response.status_code}"),
                status=response.status_code,
            )
        return DeliveryResult(ok=True, status=response.status_code)


@dataclass
class AgentGateway:
    gateway: GatewayConfig
    agent: AgentConfig
    slack_channel: str = ""
    timeout: float = 30.0
    session: requests.Session | None = None

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()

    def build_payload(self, message: str, session_key: str, timeout_seconds: int) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "message": message,
            "name": self.agent.name,
            "sessionKey": session_key,
            "wakeMode": "now",
            "deliver": True,
            "channel": "slack",
            "timeoutSeconds": timeout_seconds,
        }
        if self.slack_channel:
            payload["to"] = f"channel:{self.slack_channel}"
        return payload

    def wake(self, message: str, session_key: str, timeout_seconds: int) -> DeliveryResult:
        try:
            response = self._session.post(
                f"{self.gateway.url.rstrip('/')}/hooks/agent",
                headers={
                    "Authorization": f"Bearer {self.gateway.hook_token}",
                    "Content-Type": "application/json",
                    "User-Agent": USER_AGENT,
                },
                json=self.build_payload(message, session_key, timeout_seconds),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            return DeliveryResult.failure(str(exc))
        if response.status_code >= 400:
            return DeliveryResult.failure(f"HTTP {response.status_code}", status=response.status_code)
        return DeliveryResult(ok=True, status=response.status_code)


__all__ = ["DeliveryResult", "SlackNotifier", "AgentGateway"]
