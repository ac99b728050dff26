"""
Server-side durable store: the JSON data file and its backup rotation.

Two backup cadences, each with its own retention:
- import-backup: taken before every save that comes from an import (keep 10)
- auto-backup:   taken on a fixed interval regardless of activity (keep 5)

Backups are whole-file copies named
    <data filename>.<tag>.<UTC ISO timestamp with ':' and '.' → '-'>
so sorting by filename sorts by age.
"""

import asyncio
import json
import logging
import os
import shutil
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from .schemas import AppData

logger = logging.getLogger(__name__)

IMPORT_BACKUP_TAG = "import-backup"
AUTO_BACKUP_TAG = "auto-backup"


def backup_timestamp(now: datetime) -> str:
    """'2026-10-19T08:30:00.123456Z' with ':' and '.' made filesystem safe."""
    iso = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return iso.replace(":", "-").replace(".", "-")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DataFile:
    """The single durable JSON document. Writes replace the whole file atomically."""

    def __init__(self, path):
        self.path = Path(path)
        # Held across an import backup and the write that follows it
        self.lock = threading.RLock()

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> AppData:
        """Stored document, or defaults when nothing has been saved yet."""
        if not self.path.exists():
            return AppData()
        with open(self.path, encoding="utf-8") as f:
            payload = json.load(f)
        return AppData.from_payload(payload)

    def write(self, data: AppData) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.lock:
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data.to_payload(), f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise


class BackupRotator:
    """Copies the data file to timestamped backups and prunes old ones per tag."""

    def __init__(self, data_path, backup_dir, clock: Callable[[], datetime] = _utcnow):
        self.data_path = Path(data_path)
        self.backup_dir = Path(backup_dir)
        self.clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, tag: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(tag, threading.Lock())

    def _pattern(self, tag: str) -> str:
        return f"{self.data_path.name}.{tag}.*"

    def list_backups(self, tag: Optional[str] = None) -> list[Path]:
        """Backups oldest → newest. All tags when tag is None."""
        if not self.backup_dir.exists():
            return []
        pattern = self._pattern(tag) if tag else f"{self.data_path.name}.*"
        return sorted(
            (p for p in self.backup_dir.glob(pattern) if p.is_file()),
            key=lambda p: p.name,
        )

    def backup(self, tag: str, keep: int) -> Optional[Path]:
        """
        Copy the current data file to a new backup, then keep only the
        `keep` newest backups for this tag. Returns the new backup path,
        or None if there is no data file yet.
        """
        if not self.data_path.exists():
            logger.debug("No data file at %s, skipping %s", self.data_path, tag)
            return None

        with self._lock_for(tag):
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            name = f"{self.data_path.name}.{tag}.{backup_timestamp(self.clock())}"
            target = self.backup_dir / name
            tmp_target = self.backup_dir / f".{name}.tmp"
            shutil.copy2(self.data_path, tmp_target)
            os.replace(tmp_target, target)
            logger.info("Created %s %s", tag, target.name)
            self.prune(tag, keep)
        return target

    def prune(self, tag: str, keep: int) -> list[Path]:
        """Delete all but the `keep` newest backups of a tag. Returns the deleted paths."""
        backups = self.list_backups(tag)
        stale = backups[:-keep] if keep > 0 else backups
        for path in stale:
            try:
                path.unlink()
                logger.info("Pruned old %s %s", tag, path.name)
            except FileNotFoundError:
                pass
        return stale


_shared_guard = threading.Lock()
_data_files: dict[Path, DataFile] = {}
_rotators: dict[tuple[Path, Path], BackupRotator] = {}


def shared_data_file(path) -> DataFile:
    """The process-wide DataFile for a path, so every writer uses the same lock."""
    key = Path(path).resolve()
    with _shared_guard:
        if key not in _data_files:
            _data_files[key] = DataFile(key)
        return _data_files[key]


def shared_rotator(data_path, backup_dir) -> BackupRotator:
    """The process-wide BackupRotator for a data file + backup dir pair."""
    key = (Path(data_path).resolve(), Path(backup_dir).resolve())
    with _shared_guard:
        if key not in _rotators:
            _rotators[key] = BackupRotator(*key)
        return _rotators[key]


class AutoBackupTask:
    """Runs an auto-backup sweep every `interval_seconds` on the event loop."""

    def __init__(self, rotator: BackupRotator, interval_seconds: float, keep: int):
        self.rotator = rotator
        self.interval_seconds = interval_seconds
        self.keep = keep
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Must be called from inside a running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Auto-backup every %.0f s, keeping %d", self.interval_seconds, self.keep)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def sweep(self) -> Optional[Path]:
        try:
            return await asyncio.to_thread(self.rotator.backup, AUTO_BACKUP_TAG, self.keep)
        except OSError as e:
            logger.error("Auto-backup failed: %s", e)
            return None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.sweep()
