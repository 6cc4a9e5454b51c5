from __future__ import annotations

import hashlib
import hmac

from missionhook.signature import compute_signature, load_webhook_secret, verify_signature

BODY = b'{"ref":"refs/heads/main"}'


def test_compute_signature_matches_github_format():
    expected = hmac.new(b"topsecret", BODY, hashlib.sha256).hexdigest()
    assert compute_signature(BODY, "topsecret") == f"sha256={expected}"


def test_verify_signature():
    good = compute_signature(BODY, "topsecret")
    assert verify_signature(BODY, good, "topsecret")
    assert not verify_signature(BODY, good, "other")
    assert not verify_signature(BODY + b" ", good, "topsecret")
    assert not verify_signature(BODY, "sha1=deadbeef", "topsecret")


def test_verify_without_secret_accepts():
    assert verify_signature(BODY, "garbage", None)


def test_load_webhook_secret(tmp_path):
    assert load_webhook_secret(tmp_path / "missing") is None
    empty = tmp_path / "empty"
    empty.write_text("  \n", encoding="utf-8")
    assert load_webhook_secret(empty) is None
    secret = tmp_path / "secret"
    secret.write_text("topsecret\n", encoding="utf-8")
    assert load_webhook_secret(secret) == "topsecret"
