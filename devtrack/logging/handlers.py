"""
Audit log handler for DevTrack.

Writes one JSON object per line to a size-rotated file. Audit entries are
logged as objects (store_logger.info(entry)) and serialized here; any other
message becomes {"timestamp", "level", "logger", "message"}.
"""

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any


class AuditFileHandler(RotatingFileHandler):
    """Size-rotated JSONL file for one audit stream."""

    def __init__(self, path: Path, max_bytes: int, backup_count: int):
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(
            str(path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
            delay=True,
        )

    @staticmethod
    def record_to_dict(record: logging.LogRecord) -> dict[str, Any]:
        payload = record.msg
        if hasattr(payload, "to_dict"):
            data = payload.to_dict()
        else:
            data = {
                "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                "logger": record.name,
                "message": record.getMessage(),
            }
        data["level"] = record.levelname
        return data

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(self.record_to_dict(record), default=str)
            if self.shouldRollover(record):
                self.doRollover()
            if self.stream is None:
                self.stream = self._open()
            self.stream.write(line + "\n")
            self.flush()
        except Exception:
            self.handleError(record)


def build_audit_logger(
    name: str,
    path: Path,
    level: str,
    max_bytes: int,
    backup_count: int,
) -> logging.Logger:
    """
    Create (or re-point) a logger that writes only to its audit file.

    Existing handlers are closed first, so calling this again after the
    config changes moves the stream to the new path.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(AuditFileHandler(path, max_bytes, backup_count))
    logger.propagate = False
    return logger


def read_audit_log(path: Path) -> list[dict[str, Any]]:
    """Parse an audit file back into dicts; a missing file reads as empty."""
    if not path.exists():
        return []
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]
