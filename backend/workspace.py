"""
Workspace — one editing session over a JobStore.

Every user action follows the same path: mutate the store, re-price the
affected job, hand a snapshot to the SaveWorker (never waiting on it), and
return what the view needs to re-render.
"""

import logging
from typing import Optional

from .job_store import JobStore
from .persistence import REASON_EDIT, REASON_IMPORT, PersistenceGateway, SaveWorker
from .pricing_engine import PricingEngine, calculate_job
from .schemas import GlobalSettings, Job, JobCalculation
from .transfer import export_data, import_data

logger = logging.getLogger(__name__)


class Workspace:

    def __init__(self, gateway: PersistenceGateway, store: Optional[JobStore] = None,
                 worker: Optional[SaveWorker] = None):
        self.gateway = gateway
        self.store = store or JobStore()
        self.worker = worker or SaveWorker(gateway)

    # --- Session lifecycle ---

    def open(self) -> None:
        """Load the persisted state (remote → local → defaults) into the store."""
        self.store.load(self.gateway.load())
        logger.info("Opened workspace with %d jobs", len(self.store))

    def close(self, timeout: Optional[float] = None) -> None:
        self.worker.close(timeout)

    @property
    def warning(self) -> Optional[str]:
        return self.gateway.warning

    def _save(self, reason: str = REASON_EDIT) -> None:
        self.worker.submit(self.store.snapshot(), reason)

    def _priced(self, job: Optional[Job]) -> Optional[tuple[Job, JobCalculation]]:
        if job is None:
            return None
        return job, calculate_job(job, self.store.settings)

    # --- Reads ---

    def calculations(self) -> dict[int, JobCalculation]:
        return PricingEngine(self.store.settings).calculate_all(self.store.jobs)

    def summary(self) -> dict:
        return PricingEngine(self.store.settings).summarize(self.store.jobs)

    # --- Row actions ---

    def add_job(self) -> tuple[Job, JobCalculation]:
        job = self.store.add_job()
        self._save()
        return self._priced(job)

    def duplicate_job(self, job_id: int) -> Optional[tuple[Job, JobCalculation]]:
        job = self.store.duplicate_job(job_id)
        if job is not None:
            self._save()
        return self._priced(job)

    def delete_job(self, job_id: int) -> bool:
        deleted = self.store.delete_job(job_id)
        if deleted:
            self._save()
        return deleted

    def clear_job(self, job_id: int) -> Optional[tuple[Job, JobCalculation]]:
        job = self.store.clear_job(job_id)
        if job is not None:
            self._save()
        return self._priced(job)

    def edit_field(self, job_id: int, field, value, committed: bool = False) -> Optional[tuple[Job, JobCalculation]]:
        job = self.store.update_field(job_id, field, value, committed=committed)
        if job is not None:
            self._save()
        return self._priced(job)

    def edit_settings(self, **changes) -> GlobalSettings:
        """Global edits re-price every row; callers re-read calculations()."""
        settings = self.store.update_settings(**changes)
        self._save()
        return settings

    # --- Import / export ---

    def export_text(self) -> str:
        return export_data(self.store)

    def import_text(self, text: str) -> None:
        """Apply an import, then persist it with an import backup. Raises DataImportError."""
        import_data(self.store, text)
        self._save(REASON_IMPORT)
