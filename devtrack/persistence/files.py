"""
DevTrack File Persistence

Writes snapshots of the store to disk and reads them back:
- Timestamped JSON backups:  devtrack_backup_<yyyy-MM-dd_HH-mm-ss>.json
- One snapshot per day:      daily_snapshot_<yyyy-MM-dd>.json
- CSV exports:               devtrack_<label>_<yyyy-MM-dd_HH-mm-ss>.csv
- The CLI working state:     devtrack_state.json

All blocking file I/O runs in a worker thread via asyncio.to_thread.
Callers take the snapshot from the store first, so no store lock is held
while writing.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from devtrack.exceptions import DevTrackError, PersistenceError, ValidationError
from devtrack.logging import BackupLogEntry, backup_logger
from devtrack.persistence.snapshot import Snapshot

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "devtrack_backup_"
DAILY_PREFIX = "daily_snapshot_"
STATE_FILENAME = "devtrack_state.json"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
DATE_FORMAT = "%Y-%m-%d"


def _csv_value(value: Any) -> str:
    """Render one CSV cell; only comma-containing strings are quoted."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, str):
        if "," in value:
            return '"' + value.replace('"', '""') + '"'
        return value
    return str(value)


def render_csv(rows: list[dict[str, Any]]) -> str:
    """
    Convert uniform flat records to CSV text.

    The header is the keys of the first record; lines are joined with
    newlines and there is no trailing newline. Empty input renders as "".
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(_csv_value(row.get(key)) for key in headers))
    return "\n".join(lines)


class BackupManager:
    """
    File-based backup, restore and export for DevTrack snapshots.

    Usage:
        backups = BackupManager("./data")
        path = await backups.save_backup(await repo.export_all_data())
        names = await backups.list_backups()
        snapshot = await backups.load_backup(names[0])
    """

    def __init__(self, data_dir: Path | str = "./data"):
        self.data_dir = Path(data_dir).expanduser()

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _ensure_data_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, filename: str) -> Path:
        """Path of a file inside the data directory; other directories are refused."""
        if Path(filename).name != filename or filename in ("", ".", ".."):
            raise ValidationError(f"Invalid backup name '{filename}'", field="filename", value=filename)
        return self.data_dir / filename

    def _write(self, path: Path, text: str) -> int:
        self._ensure_data_dir()
        data = text.encode("utf-8")
        path.write_bytes(data)
        return len(data)

    async def _write_file(self, action: str, path: Path, text: str, records: int = 0) -> Path:
        started = time.monotonic()
        entry = BackupLogEntry(action=action, path=str(path), records=records)
        try:
            entry.bytes_written = await asyncio.to_thread(self._write, path, text)
        except OSError as e:
            backup_logger.error(entry.failed(e))
            raise PersistenceError(f"Failed to write {path.name}", path=str(path), reason=str(e))
        entry.duration_ms = int((time.monotonic() - started) * 1000)
        backup_logger.info(entry)
        logger.info(f"Wrote {path} ({entry.bytes_written} bytes)")
        return path

    def _list(self, prefix: str) -> list[str]:
        try:
            self._ensure_data_dir()
            names = [
                name
                for name in os.listdir(self.data_dir)
                if name.startswith(prefix) and name.endswith(".json")
            ]
        except OSError as e:
            logger.warning(f"Could not list {self.data_dir}: {e}")
            return []
        return sorted(names, reverse=True)

    # =========================================================================
    # BACKUPS
    # =========================================================================

    async def save_backup(self, snapshot: Snapshot) -> Path:
        """
        Write a timestamped backup with a fresh exportedAt and version.

        Returns:
            Path of the written file

        Raises:
            PersistenceError: If the file cannot be written
        """
        stamped = snapshot.stamped()
        filename = f"{BACKUP_PREFIX}{datetime.now().strftime(TIMESTAMP_FORMAT)}.json"
        text = json.dumps(stamped.to_dict(), indent=2)
        return await self._write_file("backup", self.data_dir / filename, text, stamped.record_count())

    async def load_backup(self, filename: str) -> Snapshot:
        """
        Read a backup or daily snapshot by file name.

        Raises:
            PersistenceError: If the file is missing, unreadable or not JSON
            ValidationError: If the JSON is not a valid snapshot
        """
        path = self._resolve(filename)
        entry = BackupLogEntry(action="load", path=str(path))
        try:
            text = await asyncio.to_thread(path.read_text, "utf-8")
            data = json.loads(text)
        except (OSError, json.JSONDecodeError) as e:
            backup_logger.error(entry.failed(e))
            raise PersistenceError(f"Failed to load {filename}", path=str(path), reason=str(e))

        snapshot = Snapshot.from_dict(data)
        entry.records = snapshot.record_count()
        backup_logger.info(entry)
        return snapshot

    async def list_backups(self) -> list[str]:
        """Backup file names, most recent first. Empty if the directory cannot be read."""
        return await asyncio.to_thread(self._list, BACKUP_PREFIX)

    async def list_daily_snapshots(self) -> list[str]:
        """Daily snapshot file names, most recent first."""
        return await asyncio.to_thread(self._list, DAILY_PREFIX)

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    async def save_daily_snapshot(self, snapshot: Snapshot) -> Path:
        """Write today's snapshot, replacing any earlier one from today."""
        filename = f"{DAILY_PREFIX}{datetime.now().strftime(DATE_FORMAT)}.json"
        text = json.dumps(snapshot.to_dict(), indent=2)
        return await self._write_file(
            "daily_snapshot", self.data_dir / filename, text, snapshot.record_count()
        )

    async def get_latest_snapshot(self) -> Snapshot | None:
        """
        Load the first file of the merged backup and daily-snapshot lists
        sorted by name, descending.

        Returns:
            The snapshot, or None if there is none or it cannot be loaded
        """
        backups = await self.list_backups()
        daily = await self.list_daily_snapshots()
        names = sorted([*backups, *daily], reverse=True)
        if not names:
            return None
        try:
            return await self.load_backup(names[0])
        except DevTrackError as e:
            logger.warning(f"Latest snapshot {names[0]} could not be loaded: {e}")
            return None

    async def save_state(self, snapshot: Snapshot) -> Path:
        """Write the working state the CLI reloads on its next run."""
        text = json.dumps(snapshot.to_dict(), indent=2)
        return await self._write_file(
            "state", self.data_dir / STATE_FILENAME, text, snapshot.record_count()
        )

    async def load_state(self) -> Snapshot | None:
        """Read the working state, or None if it has never been written."""
        exists = await asyncio.to_thread((self.data_dir / STATE_FILENAME).exists)
        if not exists:
            return None
        return await self.load_backup(STATE_FILENAME)

    # =========================================================================
    # EXPORTS AND CLEANUP
    # =========================================================================

    async def save_csv_export(self, rows: list[dict[str, Any]], label: str) -> Path:
        """
        Write records as CSV. An empty list produces an empty file.

        Raises:
            PersistenceError: If the file cannot be written
        """
        filename = f"devtrack_{label}_{datetime.now().strftime(TIMESTAMP_FORMAT)}.csv"
        self._resolve(filename)
        return await self._write_file("csv_export", self.data_dir / filename, render_csv(rows), len(rows))

    def _delete_old(self, names: list[str], cutoff: float) -> int:
        deleted = 0
        for name in names:
            path = self.data_dir / name
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    deleted += 1
            except OSError as e:
                logger.warning(f"Could not remove old backup {name}: {e}")
        return deleted

    async def delete_old_backups(self, days_to_keep: int = 30) -> int:
        """
        Delete backups last modified more than `days_to_keep` days ago.

        Per-file failures are logged and skipped.

        Returns:
            Number of files actually deleted
        """
        names = await self.list_backups()
        cutoff = time.time() - days_to_keep * 86400
        deleted = await asyncio.to_thread(self._delete_old, names, cutoff)
        entry = BackupLogEntry(action="cleanup", path=str(self.data_dir), records=deleted)
        backup_logger.info(entry)
        return deleted
