"""
Filament material densities and linear-density derivation.

All filament is assumed to be 1.75 mm diameter. Linear density (g/m) is the
value the pricing engine divides printed weight by to get filament length.
"""

import math
from typing import Optional

from .rounding import round_up

FILAMENT_DIAMETER_MM = 1.75

# Densities (g/cm³); keys are lowercase, lookups are case-insensitive
MATERIAL_DENSITIES = {
    "pla": 1.24,
    "abs": 1.04,
    "petg": 1.27,
    "tpu": 1.21,
    "pa": 1.14,
    "asa": 1.07,
    "pc": 1.20,
}

# Unknown, empty, or custom material names price as PLA
DEFAULT_MATERIAL = "pla"
DEFAULT_DENSITY = MATERIAL_DENSITIES[DEFAULT_MATERIAL]

DENSITY_CUSTOM = "custom"
DENSITY_PRESET = "preset"
DENSITY_DEFAULT = "default"


def _key(material_name: Optional[str]) -> str:
    return (material_name or "").strip().lower()


def filament_cross_section_cm2() -> float:
    """Cross-section area of the filament in cm² (1.75 mm → 0.0240528...)."""
    return math.pi * (FILAMENT_DIAMETER_MM / 2) ** 2 / 100


def material_density(material_name: Optional[str]) -> float:
    """Density in g/cm³ for a material name, PLA when not a preset."""
    return MATERIAL_DENSITIES.get(_key(material_name), DEFAULT_DENSITY)


def is_material_preset(material_name: Optional[str]) -> bool:
    """True if the name (any case) is one of the built-in materials."""
    key = _key(material_name)
    return bool(key) and key in MATERIAL_DENSITIES


def linear_density(material_name: Optional[str], custom_density: Optional[float] = None) -> float:
    """
    Filament mass per metre (g/m).

    A positive custom_density is already in g/m and is returned as-is.
    Otherwise derived from the material's volumetric density, rounded UP
    to 2 decimals: PLA → 1.24 × 0.02405 × 100 = 2.982… → 2.99.
    """
    if custom_density is not None and custom_density > 0:
        return custom_density
    return round_up(material_density(material_name) * filament_cross_section_cm2() * 100, 2)


def density_source(material_name: Optional[str], custom_density: Optional[float] = None) -> str:
    """Where the linear density came from: custom override, preset table, or PLA default."""
    if custom_density is not None and custom_density > 0:
        return DENSITY_CUSTOM
    if is_material_preset(material_name):
        return DENSITY_PRESET
    return DENSITY_DEFAULT


def list_materials() -> list[dict]:
    """Preset materials for the material dropdown, in table order."""
    return [
        {
            "key": key,
            "label": key.upper(),
            "density": density,
            "linear_density": linear_density(key),
        }
        for key, density in MATERIAL_DENSITIES.items()
    ]
