"""
Rate unit conversions for crop plan treatments.

Liquid rates are canonicalized to gallons and dry rates to pounds.
Unknown units are returned unchanged (treated as already canonical).
"""
import math
from typing import Optional

OZ_PER_GALLON = 128.0
QT_PER_GALLON = 4.0
OZ_PER_POUND = 16.0
GRAMS_PER_POUND = 453.592
GRAMS_PER_OUNCE = 28.3495
POUNDS_PER_TON = 2000.0


def finite_or_zero(value: Optional[float]) -> float:
    """Coerce None, NaN, infinities and non-numeric values to 0.0."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def convert_to_gallons(value: float, unit: Optional[str]) -> float:
    """Convert a liquid rate to gallons."""
    value = finite_or_zero(value)
    if unit == "oz":
        return value / OZ_PER_GALLON
    if unit == "qt":
        return value / QT_PER_GALLON
    return value


def convert_to_pounds(value: float, unit: Optional[str]) -> float:
    """Convert a dry rate to pounds."""
    value = finite_or_zero(value)
    if unit == "oz":
        return value / OZ_PER_POUND
    if unit == "g":
        return value / GRAMS_PER_POUND
    if unit == "ton":
        return value * POUNDS_PER_TON
    return value


def price_per_pound(price: float, price_unit: Optional[str]) -> float:
    """Per-ton prices are spread over 2000 lb; anything else is already per pound."""
    price = finite_or_zero(price)
    if price_unit == "ton":
        return price / POUNDS_PER_TON
    return price
