"""
Import/export of settings + jobs as pretty-printed JSON text.

Export leaves out nextId; import recomputes it from the imported ids.
An import either applies completely or not at all.
"""

import json
import logging

from pydantic import ValidationError

from .job_store import JobStore
from .schemas import ExportData, GlobalSettings, Job

logger = logging.getLogger(__name__)


class DataImportError(ValueError):
    """Import text was rejected; the store was not touched."""


def export_data(store: JobStore) -> str:
    data = ExportData(global_settings=store.settings, jobs=store.jobs)
    return json.dumps(data.model_dump(by_alias=True), indent=2, ensure_ascii=False)


def parse_import(text: str, current_settings: GlobalSettings) -> tuple[GlobalSettings, list[Job]]:
    """
    Validate import text without applying it.

    A missing globalSettings keeps the current settings; missing jobs
    means an empty job list. Raises DataImportError on anything unparseable.
    """
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise DataImportError("Invalid JSON.") from e

    if not isinstance(payload, dict):
        raise DataImportError("Invalid JSON: expected an object with globalSettings and jobs.")

    try:
        raw_settings = payload.get("globalSettings")
        settings = (
            GlobalSettings.model_validate(raw_settings)
            if raw_settings
            else current_settings.model_copy()
        )
        jobs = [Job.model_validate(raw_job) for raw_job in payload.get("jobs") or []]
    except (ValidationError, TypeError) as e:
        raise DataImportError(f"Invalid data: {e}") from e

    ids = [job.id for job in jobs]
    if len(ids) != len(set(ids)):
        raise DataImportError("Invalid data: duplicate job ids.")

    return settings, jobs


def import_data(store: JobStore, text: str) -> None:
    """Parse text and replace the store's settings + jobs. Raises DataImportError."""
    settings, jobs = parse_import(text, store.settings)
    store.set_from_import(settings, jobs)
