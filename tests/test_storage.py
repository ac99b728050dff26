"""
Server-side storage tests — data file and backup rotation.

Tests:
1-3.  DataFile read defaults / atomic write / malformed content
4-6.  Backup naming and the no-data-file case
7-9.  Retention per cadence (import-backup 10, auto-backup 5), concurrent sweeps
10-11. AutoBackupTask sweeps on its interval and survives failures
12.    One DataFile / BackupRotator per path for the process
"""

import asyncio
import itertools
import json
import threading
from datetime import datetime, timedelta, timezone

from backend.schemas import AppData, Job
from backend.storage import (
    AUTO_BACKUP_TAG,
    IMPORT_BACKUP_TAG,
    AutoBackupTask,
    BackupRotator,
    DataFile,
    backup_timestamp,
    shared_data_file,
    shared_rotator,
)

BASE_TIME = datetime(2026, 10, 19, 8, 30, 0, 123456, tzinfo=timezone.utc)


def _ticking_clock(step_seconds=1):
    """Clock that advances one step per call, safe to share between threads."""
    counter = itertools.count()
    lock = threading.Lock()

    def clock():
        with lock:
            tick = next(counter)
        return BASE_TIME + timedelta(seconds=tick * step_seconds)

    return clock


def _write_sample(path, name="Gear"):
    DataFile(path).write(AppData(jobs=[Job(id=1, name=name)], next_id=2))


# ============================================================
# 1-3. DataFile
# ============================================================

def test_data_file_defaults_when_missing(tmp_path):
    data = DataFile(tmp_path / "data.json").read()
    assert data.to_payload() == {
        "globalSettings": {"printerPower": 100.0, "electricityPrice": 0.12, "currencySymbol": "🦁"},
        "jobs": [],
        "nextId": 1,
    }


def test_data_file_write_is_whole_file(tmp_path):
    path = tmp_path / "data.json"
    _write_sample(path)
    assert DataFile(path).read().jobs[0].name == "Gear"
    assert json.loads(path.read_text(encoding="utf-8"))["nextId"] == 2
    assert [p.name for p in tmp_path.iterdir()] == ["data.json"]  # no temp files left


def test_data_file_defaults_missing_sections(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps({"jobs": [{"id": 5, "priceKg": "abc"}], "nextId": "x"}), encoding="utf-8")
    data = DataFile(path).read()
    assert data.global_settings.printer_power == 100
    assert data.jobs[0].price_kg == 0
    assert data.next_id == 1


# ============================================================
# 4-6. Backup naming
# ============================================================

def test_backup_timestamp_is_filesystem_safe():
    stamp = backup_timestamp(BASE_TIME)
    assert stamp == "2026-10-19T08-30-00-123456Z"
    assert ":" not in stamp and "." not in stamp


def test_backup_file_name(tmp_path):
    path = tmp_path / "data.json"
    _write_sample(path)
    rotator = BackupRotator(path, tmp_path / "backups", clock=lambda: BASE_TIME)
    backup = rotator.backup(IMPORT_BACKUP_TAG, keep=10)
    assert backup.name == "data.json.import-backup.2026-10-19T08-30-00-123456Z"
    assert backup.read_text(encoding="utf-8") == path.read_text(encoding="utf-8")


def test_backup_without_data_file_is_noop(tmp_path):
    rotator = BackupRotator(tmp_path / "data.json", tmp_path / "backups")
    assert rotator.backup(AUTO_BACKUP_TAG, keep=5) is None
    assert rotator.list_backups() == []


# ============================================================
# 7-9. Retention
# ============================================================

def test_import_backups_keep_newest_ten(tmp_path):
    path = tmp_path / "data.json"
    _write_sample(path)
    rotator = BackupRotator(path, tmp_path / "backups", clock=_ticking_clock())

    created = [rotator.backup(IMPORT_BACKUP_TAG, keep=10) for _ in range(12)]

    remaining = rotator.list_backups(IMPORT_BACKUP_TAG)
    assert len(remaining) == 10
    assert remaining == created[2:]


def test_cadences_have_independent_retention(tmp_path):
    path = tmp_path / "data.json"
    _write_sample(path)
    rotator = BackupRotator(path, tmp_path / "backups", clock=_ticking_clock())

    for _ in range(11):
        rotator.backup(IMPORT_BACKUP_TAG, keep=10)
    for _ in range(7):
        rotator.backup(AUTO_BACKUP_TAG, keep=5)

    assert len(rotator.list_backups(IMPORT_BACKUP_TAG)) == 10
    assert len(rotator.list_backups(AUTO_BACKUP_TAG)) == 5
    assert len(rotator.list_backups()) == 15


def test_concurrent_sweeps_respect_retention(tmp_path):
    path = tmp_path / "data.json"
    _write_sample(path)
    rotator = BackupRotator(path, tmp_path / "backups", clock=_ticking_clock())

    threads = [
        threading.Thread(target=rotator.backup, args=(AUTO_BACKUP_TAG, 3))
        for _ in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)

    assert len(rotator.list_backups(AUTO_BACKUP_TAG)) == 3
    assert not list((tmp_path / "backups").glob(".*.tmp"))


# ============================================================
# 10-11. AutoBackupTask
# ============================================================

def test_auto_backup_task_sweeps_on_interval(tmp_path):
    path = tmp_path / "data.json"
    _write_sample(path)
    rotator = BackupRotator(path, tmp_path / "backups", clock=_ticking_clock())
    task = AutoBackupTask(rotator, interval_seconds=0.01, keep=5)

    async def scenario():
        task.start()
        assert task.running
        await asyncio.sleep(0.2)
        await task.stop()

    asyncio.run(scenario())

    backups = rotator.list_backups(AUTO_BACKUP_TAG)
    assert 1 <= len(backups) <= 5
    assert task.running is False


class _BrokenRotator(BackupRotator):
    def backup(self, tag, keep):
        raise PermissionError("backup dir is read-only")


def test_auto_backup_sweep_failure_is_logged_not_raised(tmp_path, caplog):
    task = AutoBackupTask(_BrokenRotator(tmp_path / "data.json", tmp_path / "b"), 60, keep=5)
    result = asyncio.run(task.sweep())
    assert result is None
    assert "Auto-backup failed" in caplog.text


# ============================================================
# 12. Shared instances
# ============================================================

def test_shared_instances_are_one_per_path(tmp_path):
    data_path = tmp_path / "data.json"
    (tmp_path / "sub").mkdir()
    same_path = tmp_path / "sub" / ".." / "data.json"
    assert shared_data_file(data_path) is shared_data_file(str(same_path))
    assert shared_rotator(data_path, tmp_path / "b") is shared_rotator(same_path, tmp_path / "b")
    assert shared_rotator(data_path, tmp_path / "b") is not shared_rotator(data_path, tmp_path / "c")
    assert shared_data_file(data_path) is not shared_data_file(tmp_path / "other.json")
