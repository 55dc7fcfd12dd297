"""Signed JSONL trail of tenant and user provisioning events.

Each line is one event. When a signing key is configured the event carries an
HMAC-SHA256 over its canonical JSON, so `verify_audit_log` can detect edits.
Key lookup: `AUDIT_LOG_SIGNING_KEY`, then the mounted secret file. No key
means events are written unsigned.
"""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import os
import sys
from pathlib import Path
from typing import Any, Iterator, Literal

AUDIT_LOG_DIR = Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "provisioning-events.jsonl"
SIGNING_KEY_FILE = Path(os.environ.get("AUDIT_LOG_SIGNING_KEY_FILE", "/run/secrets/audit_log_signing_key"))

EventType = Literal[
    "tenant_registered", "system_admin_registered", "admin_provisioned",
    "user_created", "user_enabled", "user_disabled", "user_updated", "user_deleted",
    "infra_teardown",
]


def _signing_key() -> bytes:
    if "AUDIT_LOG_SIGNING_KEY" in os.environ:
        return os.environ["AUDIT_LOG_SIGNING_KEY"].strip().encode("utf-8")
    if SIGNING_KEY_FILE.is_file():
        return SIGNING_KEY_FILE.read_text(encoding="utf-8").strip().encode("utf-8")
    return b""


def _signature(event: dict[str, Any], key: bytes) -> str:
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def log_event(
    event_type: EventType,
    username: str,
    *,
    tenant_id: str = "",
    operator: str = "system",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Append one provisioning event.

    `username` is the affected user (or the tenant id for tenant-wide events);
    `details` carries pool ids, role kinds or the failed step.
    """
    event: dict[str, Any] = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "event_type": event_type,
        "tenant_id": tenant_id,
        "username": username,
        "operator": operator,
        "success": success,
        "details": details or {},
    }
    key = _signing_key()
    if key:
        event["signature"] = _signature(event, key)

    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)
    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
    AUDIT_LOG_FILE.chmod(0o600)


def safe_log_event(event_type: EventType, username: str, **kwargs: Any) -> bool:
    """`log_event` for request paths: a write failure is reported, never raised."""
    try:
        log_event(event_type, username, **kwargs)
    except (OSError, TypeError, ValueError) as e:
        print(f"[audit] could not record {event_type} for {username}: {e}", file=sys.stderr)
        return False
    return True


def _events() -> Iterator[str]:
    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                yield line


def verify_audit_log() -> tuple[int, int]:
    """Return (events, events whose signature matches the current key)."""
    if not AUDIT_LOG_FILE.exists():
        return 0, 0

    key = _signing_key()
    total = valid = 0
    for line in _events():
        total += 1
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            continue
        stored = event.pop("signature", "")
        if key and stored and hmac.compare_digest(stored, _signature(event, key)):
            valid += 1
    return total, valid


if __name__ == "__main__":
    total, valid = verify_audit_log()
    print(f"[audit] {valid}/{total} events with valid signatures")
    sys.exit(0 if total == valid else 1)
