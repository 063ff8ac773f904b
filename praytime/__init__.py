"""Prayer-time calculator core."""

from .astro import Location, PrayerTimes, compute_times, get_times, sun_position, to_absolute_instant
from .methods import CalculationParameters, HighLatsRule, Method, resolve

__all__ = [
    "CalculationParameters",
    "HighLatsRule",
    "Location",
    "Method",
    "PrayerTimes",
    "compute_times",
    "get_times",
    "resolve",
    "sun_position",
    "to_absolute_instant",
]
