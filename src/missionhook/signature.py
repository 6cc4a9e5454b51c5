"""GitHub webhook HMAC (``X-Hub-Signature-256``) verification."""

from __future__ import annotations

import hashlib
import hmac
from pathlib import Path

from .errors import ConfigError

SIGNATURE_HEADER = "x-hub-signature-256"
SIGNATURE_PREFIX = "sha256="


def compute_signature(raw_body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(raw_body: bytes, signature: str, secret: str | None) -> bool:
    """Constant-time comparison against the expected signature.

    ``secret is None`` means verification is not configured and the request is
    accepted.
    """
    if secret is None:
        return True
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))


def load_webhook_secret(path: Path) -> str | None:
    if not path.exists():
        return None
    try:
        secret = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"Webhook secret unreadable: {path}: {exc}") from exc
    return secret or None


__all__ = [
    "SIGNATURE_HEADER",
    "SIGNATURE_PREFIX",
    "compute_signature",
    "verify_signature",
    "load_webhook_secret",
]
