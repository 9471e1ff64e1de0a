"""Tests for the JSONL audit streams."""

import pytest

from devtrack import logging as audit_logging
from devtrack.exceptions import PersistenceError
from devtrack.logging import LogConfig, StoreLogEntry, read_audit_log, store_logger


class TestLogConfig:
    """Tests for audit log settings."""

    def test_from_env(self, tmp_path, monkeypatch):
        """Settings are read from DEVTRACK_LOG_* variables."""
        monkeypatch.setenv("DEVTRACK_LOG_DIR", str(tmp_path / "audit"))
        monkeypatch.setenv("DEVTRACK_LOG_LEVEL", "warning")
        monkeypatch.setenv("DEVTRACK_LOG_MAX_SIZE_MB", "2")
        config = LogConfig.from_env()
        assert config.store_log_path == tmp_path / "audit" / "store.jsonl"
        assert config.level == "WARNING"
        assert config.max_file_size_bytes == 2 * 1024 * 1024

    def test_bad_size_keeps_default(self, monkeypatch):
        """A non-numeric size falls back to the default."""
        monkeypatch.setenv("DEVTRACK_LOG_MAX_SIZE_MB", "lots")
        assert LogConfig.from_env().max_file_size_bytes == 5 * 1024 * 1024


class TestStreams:
    """Tests for what ends up in the audit files."""

    def test_entry_serialized(self, audit_logs):
        """Entry objects are written as JSON lines."""
        store_logger.info(StoreLogEntry(operation="create", entity="task", entity_id=3))
        lines = read_audit_log(audit_logs.store_log_path)
        assert lines[-1]["kind"] == "store"
        assert lines[-1]["operation"] == "create"
        assert lines[-1]["entity_id"] == 3
        assert lines[-1]["level"] == "INFO"

    def test_plain_message_wrapped(self, audit_logs):
        """Plain strings are wrapped in a message field."""
        store_logger.warning("manual note")
        line = read_audit_log(audit_logs.store_log_path)[-1]
        assert line["message"] == "manual note"
        assert line["logger"] == "devtrack.audit.store"
        assert line["level"] == "WARNING"

    @pytest.mark.asyncio
    async def test_store_mutations_audited(self, repo, audit_logs):
        """Each store mutation writes one audit line."""
        session = await repo.create_session("devtrack")
        await repo.update_session(session.id, {"notes": "x", "duration": 5})
        lines = read_audit_log(audit_logs.store_log_path)
        assert [(l["operation"], l["entity"]) for l in lines] == [
            ("create", "session"),
            ("update", "session"),
        ]
        assert lines[1]["fields"] == ["duration", "notes"]

    @pytest.mark.asyncio
    async def test_failed_load_audited(self, backups, audit_logs):
        """A failed backup load is logged at ERROR."""
        with pytest.raises(PersistenceError):
            await backups.load_backup("devtrack_backup_missing.json")
        line = read_audit_log(audit_logs.backup_log_path)[-1]
        assert line["action"] == "load"
        assert line["error_type"] == "FileNotFoundError"
        assert line["level"] == "ERROR"

    def test_rotation(self, tmp_path):
        """Files rotate at the size limit and keep backup_count copies."""
        config = LogConfig(log_dir=tmp_path / "rot", max_file_size_bytes=300, backup_count=2)
        audit_logging.configure(config)
        for i in range(20):
            store_logger.info(StoreLogEntry(operation="create", entity="commit", entity_id=i))
        assert (tmp_path / "rot" / "store.jsonl.1").exists()
        assert not (tmp_path / "rot" / "store.jsonl.3").exists()

    def test_missing_file_reads_empty(self, tmp_path):
        """Reading a missing log gives an empty list."""
        assert read_audit_log(tmp_path / "nothing.jsonl") == []
