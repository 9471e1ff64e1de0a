"""Tests for config module."""

import json
from datetime import timezone

import pytest

from devtrack.config import DevTrackConfig, load_config, save_config
from devtrack.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DEVTRACK_DATA_DIR", "DEVTRACK_TZ", "DEVTRACK_RETENTION_DAYS"):
        monkeypatch.delenv(name, raising=False)


class TestDevTrackConfig:
    """Tests for DevTrackConfig dataclass."""

    def test_defaults(self):
        """Test default values."""
        config = DevTrackConfig()
        assert config.timezone == "UTC"
        assert config.backup_retention_days == 30
        assert config.activity_limit == 10
        assert config.snapshot_on_write is True
        assert config.tzinfo is timezone.utc

    def test_path_expansion(self):
        """Test that ~ is expanded in data_dir."""
        config = DevTrackConfig(data_dir="~/devtrack-data")
        assert not config.data_dir.startswith("~")
        assert config.data_path.name == "devtrack-data"

    def test_round_trip_dict(self):
        """to_dict and from_dict round trip."""
        config = DevTrackConfig(data_dir="/tmp/dt", backup_retention_days=7)
        assert DevTrackConfig.from_dict(config.to_dict()) == config

    def test_unknown_keys(self):
        """Unknown keys raise ConfigError."""
        with pytest.raises(ConfigError):
            DevTrackConfig.from_dict({"colour": "blue"})


class TestLoadConfig:
    """Tests for loading from file and environment."""

    def test_missing_file_gives_defaults(self, tmp_path):
        """No config file gives the defaults."""
        config = load_config(tmp_path / "missing.json")
        assert config == DevTrackConfig()

    def test_from_file(self, tmp_path):
        """Values are read from the config file."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"data_dir": str(tmp_path / "d"), "backup_retention_days": 14}))
        config = load_config(path)
        assert config.data_dir == str(tmp_path / "d")
        assert config.backup_retention_days == 14

    def test_invalid_json(self, tmp_path):
        """Malformed JSON raises ConfigError."""
        path = tmp_path / "config.json"
        path.write_text("{oops")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_not_an_object(self, tmp_path):
        """A JSON array is not a valid config."""
        path = tmp_path / "config.json"
        path.write_text("[]")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_env_overrides(self, tmp_path, monkeypatch):
        """Environment variables override the file."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"backup_retention_days": 14}))
        monkeypatch.setenv("DEVTRACK_DATA_DIR", str(tmp_path / "env-data"))
        monkeypatch.setenv("DEVTRACK_RETENTION_DAYS", "3")
        config = load_config(path)
        assert config.data_dir == str(tmp_path / "env-data")
        assert config.backup_retention_days == 3

    def test_bad_retention(self, tmp_path, monkeypatch):
        """A non-numeric retention raises ConfigError."""
        monkeypatch.setenv("DEVTRACK_RETENTION_DAYS", "forever")
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.json")

    def test_bad_timezone(self, tmp_path, monkeypatch):
        """An unknown timezone raises ConfigError."""
        monkeypatch.setenv("DEVTRACK_TZ", "Mars/Olympus")
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.json")

    def test_save_and_load(self, tmp_path):
        """Test saving then loading a config."""
        path = tmp_path / "nested" / "config.json"
        config = DevTrackConfig(data_dir=str(tmp_path), activity_limit=25)
        save_config(config, path)
        assert load_config(path) == config
