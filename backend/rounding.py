"""
Rounding primitives shared by the density table and the pricing engine.

Both round toward +infinity so a price is never understated, even by a
fraction of a cent.
"""

import math


def round_up(value: float, digits: int) -> float:
    """Ceiling at `digits` decimal places: ceil(value * 10^digits) / 10^digits."""
    factor = 10 ** digits
    return math.ceil(value * factor) / factor


def ceiling_to_multiple(value: float, multiple: float) -> float:
    """Round up to the nearest multiple: ceil(value / multiple) * multiple."""
    return math.ceil(value / multiple) * multiple
