"""
DevTrack - Configuration Management

Loads ~/.config/devtrack/config.json and environment overrides.
"""

import json
import os
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from typing import Any

from devtrack.dates import get_timezone
from devtrack.exceptions import ConfigError


# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "devtrack"
CONFIG_FILE = CONFIG_DIR / "config.json"


@dataclass
class DevTrackConfig:
    """Main configuration container for DevTrack."""

    data_dir: str = "./data"
    timezone: str = "UTC"
    backup_retention_days: int = 30
    activity_limit: int = 10
    snapshot_on_write: bool = True

    def __post_init__(self) -> None:
        # Expand ~ in path
        self.data_dir = str(Path(self.data_dir).expanduser())

    @property
    def data_path(self) -> Path:
        """Data directory as a Path object."""
        return Path(self.data_dir)

    @property
    def tzinfo(self) -> tzinfo:
        """Resolved timezone.

        Raises:
            ConfigError: If the timezone name is unknown
        """
        return get_timezone(self.timezone)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "data_dir": self.data_dir,
            "timezone": self.timezone,
            "backup_retention_days": self.backup_retention_days,
            "activity_limit": self.activity_limit,
            "snapshot_on_write": self.snapshot_on_write,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DevTrackConfig":
        """Create config from dictionary, rejecting unknown keys."""
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(
                "Unknown configuration keys",
                {"keys": sorted(unknown)},
            )
        return cls(
            data_dir=data.get("data_dir", "./data"),
            timezone=data.get("timezone", "UTC"),
            backup_retention_days=int(data.get("backup_retention_days", 30)),
            activity_limit=int(data.get("activity_limit", 10)),
            snapshot_on_write=bool(data.get("snapshot_on_write", True)),
        )


def load_config(config_file: Path | None = None) -> DevTrackConfig:
    """
    Load configuration from file and environment.

    Environment variables DEVTRACK_DATA_DIR, DEVTRACK_TZ and
    DEVTRACK_RETENTION_DAYS override the file.

    Returns:
        DevTrackConfig with all settings loaded

    Raises:
        ConfigError: If configuration is invalid
    """
    path = config_file or CONFIG_FILE
    config = DevTrackConfig()

    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid JSON in {path}",
                {"error": str(e)},
            )
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration in {path} must be a JSON object")
        try:
            config = DevTrackConfig.from_dict(data)
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"Invalid value in {path}",
                {"error": str(e)},
            )

    if data_dir := os.environ.get("DEVTRACK_DATA_DIR"):
        config.data_dir = str(Path(data_dir).expanduser())

    if tz := os.environ.get("DEVTRACK_TZ"):
        config.timezone = tz

    if retention := os.environ.get("DEVTRACK_RETENTION_DAYS"):
        try:
            config.backup_retention_days = int(retention)
        except ValueError:
            raise ConfigError(
                "DEVTRACK_RETENTION_DAYS must be an integer",
                {"value": retention},
            )

    # Fail early on a bad timezone
    get_timezone(config.timezone)
    return config


def save_config(config: DevTrackConfig, config_file: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: DevTrackConfig to save
        config_file: Target path (defaults to ~/.config/devtrack/config.json)
    """
    path = config_file or CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
