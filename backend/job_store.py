"""
In-memory Job Store — ordered jobs, global settings and the id allocator.

Insertion order is display order. next_id only ever grows: ids are never
reused, not even after a delete or an import of externally written data.
"""

import enum
import logging
from typing import Callable, Iterator, List, Optional

from .pricing_engine import format_time
from .rounding import round_up
from .schemas import (
    DEFAULT_PRINT_TIME,
    AppData,
    GlobalSettings,
    Job,
    parse_currency_symbol,
    parse_density,
    parse_number,
)

logger = logging.getLogger(__name__)


class JobField(str, enum.Enum):
    """Editable job fields, by wire name."""
    NAME = "name"
    MATERIAL = "material"
    PRICE_KG = "priceKg"
    WEIGHT_G = "weightG"
    PRINT_TIME = "printTime"
    CUSTOM_DENSITY = "customDensity"


def _coerce_text(value, committed: bool) -> str:
    return "" if value is None else str(value)


def _coerce_amount(value, committed: bool) -> float:
    # priceKg / weightG are kept to one decimal, rounded up
    return round_up(parse_number(value), 1)


def _coerce_print_time(value, committed: bool) -> str:
    text = "" if value is None else str(value)
    # Only reformat once the field is committed so typing "1:" isn't clobbered
    return format_time(text) if committed else text


def _coerce_density(value, committed: bool) -> Optional[float]:
    return parse_density(value)


# JobField → (attribute on Job, coercer)
_FIELD_UPDATERS: dict[JobField, tuple[str, Callable]] = {
    JobField.NAME: ("name", _coerce_text),
    JobField.MATERIAL: ("material", _coerce_text),
    JobField.PRICE_KG: ("price_kg", _coerce_amount),
    JobField.WEIGHT_G: ("weight_g", _coerce_amount),
    JobField.PRINT_TIME: ("print_time", _coerce_print_time),
    JobField.CUSTOM_DENSITY: ("custom_density", _coerce_density),
}


class JobStore:
    """Single shared list of jobs + settings, mutated by user actions."""

    def __init__(self, settings: Optional[GlobalSettings] = None, jobs: Optional[List[Job]] = None,
                 next_id: int = 1):
        self.settings = settings or GlobalSettings()
        self.jobs: List[Job] = list(jobs or [])
        self.next_id = max(next_id, self._min_next_id())

    def _min_next_id(self) -> int:
        return max((job.id for job in self.jobs), default=0) + 1

    def _allocate_id(self) -> int:
        job_id = self.next_id
        self.next_id += 1
        return job_id

    def __len__(self) -> int:
        return len(self.jobs)

    def __iter__(self) -> Iterator[Job]:
        return iter(self.jobs)

    def get_job(self, job_id: int) -> Optional[Job]:
        for job in self.jobs:
            if job.id == job_id:
                return job
        return None

    # --- Row actions ---

    def add_job(self) -> Job:
        """Append an empty job with the next id."""
        job = Job(id=self._allocate_id())
        self.jobs.append(job)
        return job

    def duplicate_job(self, job_id: int) -> Optional[Job]:
        """Append a copy of job_id under a fresh id. None if job_id is unknown."""
        source = self.get_job(job_id)
        if source is None:
            return None
        copy = source.model_copy(update={"id": self._allocate_id()})
        self.jobs.append(copy)
        return copy

    def delete_job(self, job_id: int) -> bool:
        """Remove job_id, keeping the order of the rest. False if it wasn't there."""
        remaining = [job for job in self.jobs if job.id != job_id]
        if len(remaining) == len(self.jobs):
            return False
        self.jobs = remaining
        return True

    def clear_job(self, job_id: int) -> Optional[Job]:
        """Reset the editable inputs in place; id, position and customDensity stay."""
        job = self.get_job(job_id)
        if job is None:
            return None
        job.name = ""
        job.material = ""
        job.price_kg = 0.0
        job.weight_g = 0.0
        job.print_time = DEFAULT_PRINT_TIME
        return job

    def update_field(self, job_id: int, field, value, committed: bool = False) -> Optional[Job]:
        """
        Set one field on a job, coercing the raw input for that field.

        `field` is a JobField or its wire name; anything else raises
        ValueError. `committed` is True when the input lost focus, which is
        the only time printTime gets reformatted. Unknown job ids → None.
        """
        job_field = JobField(field)
        job = self.get_job(job_id)
        if job is None:
            return None
        attribute, coerce = _FIELD_UPDATERS[job_field]
        setattr(job, attribute, coerce(value, committed))
        return job

    # --- Global settings ---

    def update_settings(self, printer_power=None, electricity_price=None, currency_symbol=None) -> GlobalSettings:
        """Apply global-settings edits. Omitted (None) values are left as they are."""
        if printer_power is not None:
            self.settings.printer_power = parse_number(printer_power)
        if electricity_price is not None:
            self.settings.electricity_price = parse_number(electricity_price)
        if currency_symbol is not None:
            self.settings.currency_symbol = parse_currency_symbol(currency_symbol)
        return self.settings

    # --- Bulk replace ---

    def set_from_import(self, settings: GlobalSettings, jobs: List[Job]) -> None:
        """Replace everything; next_id restarts at max(id) + 1 (1 when empty)."""
        self.settings = settings
        self.jobs = list(jobs)
        self.next_id = self._min_next_id()
        logger.info("Imported %d jobs, next id %d", len(self.jobs), self.next_id)

    def load(self, data: AppData) -> None:
        """Adopt a persisted snapshot. A stale nextId is raised past every stored id."""
        self.settings = data.global_settings.model_copy()
        self.jobs = [job.model_copy() for job in data.jobs]
        self.next_id = max(data.next_id, self._min_next_id())

    def snapshot(self) -> AppData:
        """Deep copy of the current state for persistence."""
        return AppData(
            global_settings=self.settings.model_copy(),
            jobs=[job.model_copy() for job in self.jobs],
            next_id=self.next_id,
        )
