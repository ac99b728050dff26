"""
Pricing Engine — filament length, material + electricity cost, selling price.

Pure math, no I/O. Every step rounds UP so a quote never undercharges:

    materialPrice   = roundUp(priceKg / 1000 × weightG, 1)
    electricityCost = roundUp(printerPower / 1000 × hours × electricityPrice, 1)
    totalCost       = roundUp(materialPrice + electricityCost, 1)
    sellingPrice    = ceilingToMultiple(totalCost × 3/5, 5)

The calculator is total over Job values: malformed times price as 0:00 and
unknown materials price as PLA.
"""

import re
from typing import Iterable, Optional

from .materials import density_source, linear_density
from .rounding import ceiling_to_multiple, round_up
from .schemas import GlobalSettings, Job, JobCalculation

SELLING_RATIO = 3 / 5
SELLING_PRICE_STEP = 5
MAX_MINUTES = 59

_LEADING_INT = re.compile(r"^\s*([+-]?[0-9]+)")


def parse_int(text: str) -> Optional[int]:
    """Leading-integer parse: ' 12abc' → 12, '1.5' → 1, 'abc' → None."""
    match = _LEADING_INT.match(text or "")
    return int(match.group(1)) if match else None


def parse_time(time_str: str) -> tuple[int, int]:
    """
    Parse 'H:MM' into (hours, minutes).

    Anything other than exactly two ':'-separated parts is (0, 0); a
    non-numeric part counts as 0 on its own ('abc:12' → (0, 12)).
    """
    parts = (time_str or "").split(":")
    if len(parts) != 2:
        return 0, 0
    return parse_int(parts[0]) or 0, parse_int(parts[1]) or 0


def validate_time(time_str: str) -> bool:
    """True for a well-formed clock-style 'H:MM' (0 ≤ H < 24, 0 ≤ MM < 60)."""
    parts = (time_str or "").split(":")
    if len(parts) != 2:
        return False
    hours, minutes = parse_int(parts[0]), parse_int(parts[1])
    if hours is None or minutes is None:
        return False
    return 0 <= hours < 24 and 0 <= minutes < 60


def format_time(time_str: str) -> str:
    """
    Normalize a committed print-time entry to 'H:MM'.

    '2:5' → '2:05', '1:75' → '1:59' (minutes clamp), '3' → '3:00'.
    Input without exactly one ':' is read as whole hours.
    """
    parts = (time_str or "").split(":")
    if len(parts) == 2:
        hours = parse_int(parts[0]) or 0
        minutes = min(parse_int(parts[1]) or 0, MAX_MINUTES)
        return f"{hours}:{minutes:02d}"
    return f"{parse_int(time_str) or 0}:00"


def calculate_job(job: Job, settings: GlobalSettings) -> JobCalculation:
    """Derive time, filament length and costs for one job. Never mutates the job."""
    hours, minutes = parse_time(job.print_time)
    time_minutes = hours * 60 + minutes
    time_hours = time_minutes / 60

    density = linear_density(job.material, job.custom_density)
    filament_length = None
    if job.weight_g > 0 and density > 0:
        filament_length = round_up(job.weight_g / density, 1)

    material_price = round_up(job.price_kg / 1000 * job.weight_g, 1)
    electricity_cost = round_up(
        settings.printer_power / 1000 * time_hours * settings.electricity_price, 1
    )
    total_cost = round_up(material_price + electricity_cost, 1)
    selling_price = ceiling_to_multiple(total_cost * SELLING_RATIO, SELLING_PRICE_STEP)

    return JobCalculation(
        time_minutes=time_minutes,
        time_hours=time_hours,
        filament_length=filament_length,
        linear_density=density,
        density_source=density_source(job.material, job.custom_density),
        material_price=material_price,
        electricity_cost=electricity_cost,
        total_cost=total_cost,
        selling_price=selling_price,
    )


class PricingEngine:
    """
    Prices every job in a store against one set of global settings.
    Holds no state besides the settings it was built with.
    """

    def __init__(self, settings: GlobalSettings):
        self.settings = settings

    def calculate(self, job: Job) -> JobCalculation:
        return calculate_job(job, self.settings)

    def calculate_all(self, jobs: Iterable[Job]) -> dict[int, JobCalculation]:
        """Returns {job_id: JobCalculation} in job order."""
        return {job.id: self.calculate(job) for job in jobs}

    def summarize(self, jobs: Iterable[Job]) -> dict:
        """Totals across all jobs for the summary row."""
        calcs = list(self.calculate_all(jobs).values())
        return {
            "job_count": len(calcs),
            "material_price": round(sum(c.material_price for c in calcs), 2),
            "electricity_cost": round(sum(c.electricity_cost for c in calcs), 2),
            "total_cost": round(sum(c.total_cost for c in calcs), 2),
            "selling_price": round(sum(c.selling_price for c in calcs), 2),
            "filament_length": round(sum(c.filament_length or 0 for c in calcs), 1),
        }
