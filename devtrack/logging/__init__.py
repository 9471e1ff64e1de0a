"""
DevTrack audit logging.

Two JSONL streams under ~/.devtrack/logs/ (see LogConfig):
    - store.jsonl:  entity store mutations (StoreLogEntry)
    - backup.jsonl: backup, restore, snapshot, CSV export and cleanup files
                    (BackupLogEntry)

Usage:
    from devtrack.logging import StoreLogEntry, store_logger

    store_logger.info(StoreLogEntry(operation="create", entity="session", entity_id=1))

Application diagnostics still go through logging.getLogger(__name__); only
the audit streams are routed here. Files are opened on first write.
"""

import logging
import threading
from typing import Any

from .config import AUDIT_STREAMS, LogConfig, get_config, set_config
from .entries import AuditEntry, BackupLogEntry, StoreLogEntry, now_iso
from .handlers import AuditFileHandler, build_audit_logger, read_audit_log

_loggers: dict[str, logging.Logger] = {}
_init_lock = threading.Lock()


def _audit_logger(stream: str) -> logging.Logger:
    logger = _loggers.get(stream)
    if logger is not None:
        return logger

    with _init_lock:
        if stream not in _loggers:
            config = get_config()
            _loggers[stream] = build_audit_logger(
                f"devtrack.audit.{stream}",
                config.path_for(stream),
                level=config.level,
                max_bytes=config.max_file_size_bytes,
                backup_count=config.backup_count,
            )
        return _loggers[stream]


def configure(config: LogConfig) -> None:
    """Switch to a new config; each stream is rebuilt on its next write."""
    with _init_lock:
        set_config(config)
        for logger in _loggers.values():
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
        _loggers.clear()


class _AuditStream:
    """Stand-in for a stream's logger until something is written to it."""

    def __init__(self, stream: str):
        if stream not in AUDIT_STREAMS:
            raise ValueError(f"Unknown audit stream: {stream}")
        self._stream = stream

    def info(self, entry: Any) -> None:
        _audit_logger(self._stream).info(entry)

    def warning(self, entry: Any) -> None:
        _audit_logger(self._stream).warning(entry)

    def error(self, entry: Any) -> None:
        _audit_logger(self._stream).error(entry)


store_logger = _AuditStream("store")
backup_logger = _AuditStream("backup")


__all__ = [
    "store_logger",
    "backup_logger",
    "AuditEntry",
    "StoreLogEntry",
    "BackupLogEntry",
    "AuditFileHandler",
    "read_audit_log",
    "now_iso",
    "configure",
    "LogConfig",
    "get_config",
    "set_config",
]
