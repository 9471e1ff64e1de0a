"""
Audit log settings for DevTrack.

    DEVTRACK_LOG_DIR          directory of the *.jsonl files (~/.devtrack/logs)
    DEVTRACK_LOG_LEVEL        level for every audit stream (INFO)
    DEVTRACK_LOG_MAX_SIZE_MB  rotate a file once it reaches this size (5)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

AUDIT_STREAMS = ("store", "backup")


@dataclass
class LogConfig:
    """Where and how the audit streams are written."""

    log_dir: Path = field(default_factory=lambda: Path.home() / ".devtrack" / "logs")
    level: str = "INFO"
    max_file_size_bytes: int = 5 * 1024 * 1024
    backup_count: int = 3

    @classmethod
    def from_env(cls) -> "LogConfig":
        config = cls()
        if log_dir := os.environ.get("DEVTRACK_LOG_DIR"):
            config.log_dir = Path(log_dir).expanduser()
        if level := os.environ.get("DEVTRACK_LOG_LEVEL"):
            config.level = level.upper()
        # An unparseable size keeps the default
        max_size = os.environ.get("DEVTRACK_LOG_MAX_SIZE_MB", "")
        if max_size.isdigit():
            config.max_file_size_bytes = int(max_size) * 1024 * 1024
        return config

    def path_for(self, stream: str) -> Path:
        """File of one audit stream, e.g. store -> <log_dir>/store.jsonl."""
        return self.log_dir / f"{stream}.jsonl"

    @property
    def store_log_path(self) -> Path:
        return self.path_for("store")

    @property
    def backup_log_path(self) -> Path:
        return self.path_for("backup")


_config: LogConfig | None = None


def get_config() -> LogConfig:
    """The active config, read from the environment on first use."""
    global _config
    if _config is None:
        _config = LogConfig.from_env()
    return _config


def set_config(config: LogConfig) -> None:
    global _config
    _config = config
