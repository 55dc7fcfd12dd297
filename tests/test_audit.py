"""Unit tests for provisioning audit logging."""

import json

import pytest

from scripts import audit


@pytest.fixture
def audit_file(_isolated_audit_log):
    """Audit file inside the per-test directory set up by conftest."""
    return _isolated_audit_log / "provisioning-events.jsonl"


def test_log_event_creates_file(audit_file):
    assert not audit_file.exists()

    audit.log_event(
        "tenant_registered",
        "alice",
        tenant_id="TENANT1",
        details={"user_pool_id": "us-east-1_Pool"},
    )

    assert audit_file.exists()
    assert audit_file.stat().st_mode & 0o777 == 0o600


def test_log_event_writes_valid_json(audit_file):
    audit.log_event(
        "user_created",
        "bob",
        tenant_id="TENANT1",
        operator="alice",
        details={"role": "TenantUser"},
    )

    event = json.loads(audit_file.read_text().splitlines()[0])

    assert event["event_type"] == "user_created"
    assert event["username"] == "bob"
    assert event["tenant_id"] == "TENANT1"
    assert event["operator"] == "alice"
    assert event["success"] is True
    assert "timestamp" in event
    assert "signature" in event


def test_log_multiple_events(audit_file):
    for event_type, username in [
        ("admin_provisioned", "alice"),
        ("user_created", "bob"),
        ("user_disabled", "bob"),
        ("user_deleted", "bob"),
    ]:
        audit.log_event(event_type, username, tenant_id="TENANT1")

    events = [json.loads(line) for line in audit_file.read_text().splitlines()]

    assert [e["event_type"] for e in events] == ["admin_provisioned", "user_created", "user_disabled", "user_deleted"]


def test_verify_audit_log_with_valid_signatures(audit_file):
    for i in range(5):
        audit.log_event("user_created", f"user{i}", tenant_id="TENANT1")

    assert audit.verify_audit_log() == (5, 5)


def test_verify_audit_log_detects_tampering(audit_file):
    """Signature verification catches edited events."""
    audit.log_event("admin_provisioned", "alice", tenant_id="TENANT1", details={"role": "TenantAdmin"})

    event = json.loads(audit_file.read_text().splitlines()[0])
    event["tenant_id"] = "TENANT2"
    audit_file.write_text(json.dumps(event) + "\n")

    assert audit.verify_audit_log() == (1, 0)


def test_log_event_without_signing_key(audit_file, monkeypatch):
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "")

    audit.log_event("user_deleted", "bob")

    event = json.loads(audit_file.read_text().splitlines()[0])
    assert "signature" not in event


def test_log_failed_operation(audit_file):
    audit.log_event(
        "infra_teardown",
        "system",
        tenant_id="TENANT2",
        details={"step": "delete_admin_policy", "error": "DeleteConflict"},
        success=False,
    )

    event = json.loads(audit_file.read_text().splitlines()[0])
    assert event["success"] is False
    assert event["details"]["step"] == "delete_admin_policy"


def test_audit_directory_permissions(_isolated_audit_log):
    audit.log_event("user_enabled", "bob")

    assert _isolated_audit_log.stat().st_mode & 0o777 == 0o700


def test_safe_log_event_never_raises(monkeypatch):
    def unwritable(*args, **kwargs):
        raise OSError("read-only file system")

    monkeypatch.setattr(audit, "log_event", unwritable)

    assert audit.safe_log_event("user_created", "bob") is False


def test_safe_log_event_reports_success(audit_file):
    assert audit.safe_log_event("user_updated", "bob", details={"firstName": "Bob"}) is True
    assert audit_file.exists()


def test_verify_empty_audit_log():
    assert audit.verify_audit_log() == (0, 0)


def test_signing_key_read_from_secret_file(audit_file, tmp_path, monkeypatch):
    key_file = tmp_path / "audit_log_signing_key"
    key_file.write_text("file-key\n")
    monkeypatch.delenv("AUDIT_LOG_SIGNING_KEY")
    monkeypatch.setattr(audit, "SIGNING_KEY_FILE", key_file)

    audit.log_event("tenant_registered", "alice", tenant_id="TENANT1")

    assert "signature" in json.loads(audit_file.read_text().splitlines()[0])
    assert audit.verify_audit_log() == (1, 1)


def test_unsigned_events_fail_verification(audit_file, tmp_path, monkeypatch):
    monkeypatch.delenv("AUDIT_LOG_SIGNING_KEY")
    monkeypatch.setattr(audit, "SIGNING_KEY_FILE", tmp_path / "missing")

    audit.log_event("user_created", "bob")

    assert audit.verify_audit_log() == (1, 0)
