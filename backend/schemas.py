"""
Wire/persisted shapes for settings, jobs and the stored document.

Python attributes are snake_case; the JSON on disk and on the wire uses the
camelCase aliases (printerPower, priceKg, nextId, ...). Parsing is lenient:
bad numbers become 0 and a bad customDensity becomes null, so any stored
document can be loaded and priced.
"""

import logging
import math
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_PRINTER_POWER = 100.0     # watts
DEFAULT_ELECTRICITY_PRICE = 0.12  # currency per kWh
DEFAULT_CURRENCY_SYMBOL = "🦁"
DEFAULT_PRINT_TIME = "0:00"


def parse_number(value, default: float = 0.0) -> float:
    """Parse a numeric input. Empty, non-numeric, NaN or infinite → default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(str(value).strip())
    except (ValueError, TypeError):
        return default
    if not math.isfinite(number):
        return default
    return number


def parse_density(value) -> Optional[float]:
    """Custom linear density: a positive number, otherwise None (cleared)."""
    number = parse_number(value)
    return number if number > 0 else None


def parse_currency_symbol(value) -> str:
    symbol = str(value).strip() if value is not None else ""
    return symbol or DEFAULT_CURRENCY_SYMBOL


class GlobalSettings(BaseModel):
    printer_power: float = Field(DEFAULT_PRINTER_POWER, alias="printerPower")
    electricity_price: float = Field(DEFAULT_ELECTRICITY_PRICE, alias="electricityPrice")
    currency_symbol: str = Field(DEFAULT_CURRENCY_SYMBOL, alias="currencySymbol")

    class Config:
        populate_by_name = True

    @field_validator("printer_power", "electricity_price", mode="before")
    @classmethod
    def _coerce_number(cls, value):
        return parse_number(value)

    @field_validator("currency_symbol", mode="before")
    @classmethod
    def _coerce_currency(cls, value):
        return parse_currency_symbol(value)


class Job(BaseModel):
    id: int = Field(gt=0)
    name: str = ""
    material: str = ""
    price_kg: float = Field(0.0, alias="priceKg")
    weight_g: float = Field(0.0, alias="weightG")
    print_time: str = Field(DEFAULT_PRINT_TIME, alias="printTime")
    custom_density: Optional[float] = Field(None, alias="customDensity")

    class Config:
        populate_by_name = True

    @field_validator("name", "material", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        return "" if value is None else str(value)

    @field_validator("print_time", mode="before")
    @classmethod
    def _coerce_time(cls, value):
        return DEFAULT_PRINT_TIME if value is None else str(value)

    @field_validator("price_kg", "weight_g", mode="before")
    @classmethod
    def _coerce_number(cls, value):
        return parse_number(value)

    @field_validator("custom_density", mode="before")
    @classmethod
    def _coerce_density(cls, value):
        return parse_density(value)


class ExportData(BaseModel):
    """What the export/import textarea carries (no nextId)."""
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings, alias="globalSettings")
    jobs: List[Job] = []

    class Config:
        populate_by_name = True


class AppData(BaseModel):
    """The full persisted document: settings, jobs and the id counter."""
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings, alias="globalSettings")
    jobs: List[Job] = []
    next_id: int = Field(1, alias="nextId", ge=1)

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def _unique_job_ids(self):
        seen = set()
        for job in self.jobs:
            if job.id in seen:
                raise ValueError(f"duplicate job id {job.id}")
            seen.add(job.id)
        return self

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_payload(cls, payload) -> "AppData":
        """
        Build from an untrusted stored/remote document.

        globalSettings, jobs and nextId are each defaulted on their own when
        missing or malformed; a malformed job entry is skipped, the rest kept.
        A repeated job id keeps its first row only.
        """
        if not isinstance(payload, dict):
            logger.warning("Stored data is not an object, using defaults")
            return cls()

        global_settings = GlobalSettings()
        raw_settings = payload.get("globalSettings")
        if isinstance(raw_settings, dict):
            try:
                global_settings = GlobalSettings.model_validate(raw_settings)
            except ValidationError as e:
                logger.warning("Ignoring malformed globalSettings: %s", e)

        jobs = []
        seen_ids = set()
        raw_jobs = payload.get("jobs")
        if isinstance(raw_jobs, list):
            for raw_job in raw_jobs:
                try:
                    job = Job.model_validate(raw_job)
                except ValidationError as e:
                    logger.warning("Skipping malformed job entry %r: %s", raw_job, e)
                    continue
                if job.id in seen_ids:
                    logger.warning("Skipping job with duplicate id %d", job.id)
                    continue
                seen_ids.add(job.id)
                jobs.append(job)

        next_id = payload.get("nextId")
        if (
            isinstance(next_id, bool)
            or not isinstance(next_id, (int, float))
            or (isinstance(next_id, float) and not math.isfinite(next_id))
            or next_id < 1
        ):
            next_id = 1

        return cls(global_settings=global_settings, jobs=jobs, next_id=int(next_id))


class JobCalculation(BaseModel):
    """Derived values for one job. filament_length is None when there is no weight."""
    time_minutes: int = Field(alias="timeMinutes")
    time_hours: float = Field(alias="timeHours")
    filament_length: Optional[float] = Field(None, alias="filamentLength")
    linear_density: float = Field(alias="linearDensity")
    density_source: str = Field(alias="densitySource")
    material_price: float = Field(alias="materialPrice")
    electricity_cost: float = Field(alias="electricityCost")
    total_cost: float = Field(alias="totalCost")
    selling_price: float = Field(alias="sellingPrice")

    class Config:
        populate_by_name = True


class CalculateRequest(BaseModel):
    global_settings: Optional[GlobalSettings] = Field(None, alias="globalSettings")
    job: Job

    class Config:
        populate_by_name = True
