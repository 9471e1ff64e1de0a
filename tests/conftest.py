"""Shared fixtures for DevTrack tests."""

import pytest

from devtrack import logging as audit_logging
from devtrack.logging import LogConfig
from devtrack.persistence import BackupManager, DevTrackRepository
from devtrack.tracker import DevTracker


@pytest.fixture(autouse=True)
def audit_logs(tmp_path):
    """Send the JSONL audit logs to a temp directory."""
    config = LogConfig(log_dir=tmp_path / "logs")
    audit_logging.configure(config)
    return config


@pytest.fixture
def repo():
    """Empty UTC store."""
    return DevTrackRepository()


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def backups(data_dir):
    return BackupManager(data_dir)


@pytest.fixture
def tracker(repo, backups):
    return DevTracker(repo, backups)
