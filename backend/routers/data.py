"""
Durable data endpoints.

GET  /api/data              → stored document (defaults when nothing saved yet)
POST /api/data?reason=...   → replace the stored document; reason=import
                              takes an import-backup of the old file first
GET  /api/data/backups      → backup file names, oldest first
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from ..config import settings
from ..schemas import AppData
from ..storage import IMPORT_BACKUP_TAG, BackupRotator, DataFile, shared_data_file, shared_rotator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/data", tags=["data"])


def get_data_file() -> DataFile:
    return shared_data_file(settings.DATA_FILE)


def get_rotator() -> BackupRotator:
    return shared_rotator(settings.DATA_FILE, settings.BACKUP_DIR)


@router.get("")
def read_data(data_file: DataFile = Depends(get_data_file)):
    try:
        return data_file.read().to_payload()
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Error loading data: %s", e)
        raise HTTPException(status_code=500, detail="Error loading data")


@router.post("")
def write_data(
    payload: AppData,
    reason: str = Query("edit", pattern="^(edit|import)$"),
    data_file: DataFile = Depends(get_data_file),
    rotator: BackupRotator = Depends(get_rotator),
):
    try:
        with data_file.lock:
            if reason == "import":
                rotator.backup(IMPORT_BACKUP_TAG, settings.IMPORT_BACKUP_KEEP)
            data_file.write(payload)
    except OSError as e:
        logger.error("Error saving data: %s", e)
        raise HTTPException(status_code=500, detail="Error saving data")
    return {"ok": True, "jobs": len(payload.jobs)}


@router.get("/backups")
def list_backups(rotator: BackupRotator = Depends(get_rotator)):
    return [path.name for path in rotator.list_backups()]
