"""Tests for the structlog-backed audit logger and vault audit trail."""

import json

from keysafe.core.audit_log import AuditLogger, EventSeverity, EventType


def _events(logger):
    lines = logger.log_file.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines if line.strip()]


class TestAuditLogger:

    def test_log_event_writes_json(self, tmp_path):
        logger = AuditLogger(log_dir=tmp_path / "logs")
        try:
            event_id = logger.log_event(
                EventType.SYSTEM_START, EventSeverity.INFO, "starting", details={"port": 1}
            )
            events = _events(logger)
        finally:
            logger.close()

        assert events[-1]["event_id"] == event_id
        assert events[-1]["event_type"] == "system.start"
        assert events[-1]["severity"] == "info"
        assert events[-1]["details"] == {"port": 1}
        assert "hostname" in events[-1]["user_context"]

    def test_vault_event_prefix(self, tmp_path):
        logger = AuditLogger(log_dir=tmp_path / "logs")
        try:
            logger.log_vault_event(EventType.ENTRY_ADDED, "Entry added: x")
            events = _events(logger)
        finally:
            logger.close()
        assert events[-1]["message"] == "Vault: Entry added: x"


class TestVaultAuditTrail:

    def test_operations_logged_without_secrets(self, unlocked_vault, _isolate_audit_logs):
        entry_id = unlocked_vault.add_entry("example.com", "alice", "top-secret-pw", notes="secret-note")
        unlocked_vault.get_entry(entry_id)
        unlocked_vault.update_entry(entry_id, "example.com", "alice", password="other-secret-pw")
        unlocked_vault.delete_entry(entry_id)
        unlocked_vault.export_backup()
        unlocked_vault.lock()

        types = [e["event_type"] for e in _events(_isolate_audit_logs)]
        for expected in (
            "vault.created",
            "vault.entry.added",
            "vault.entry.accessed",
            "vault.entry.updated",
            "vault.entry.deleted",
            "vault.backup.exported",
            "vault.locked",
        ):
            assert expected in types

        text = _isolate_audit_logs.log_file.read_text(encoding="utf-8")
        for secret in ("master123", "top-secret-pw", "secret-note", "other-secret-pw"):
            assert secret not in text
