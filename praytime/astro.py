"""Astronomical computations for daily prayer times."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .formatting import PLACEHOLDER, format_time, instant_from_ms, round_time
from .methods import (
    EVENTS,
    Angle,
    AngleOrOffset,
    CalculationParameters,
    HighLatsRule,
    Midnight,
    Minutes,
    resolve,
)

__all__ = [
    "Location",
    "SunPosition",
    "PrayerTimes",
    "sun_position",
    "compute_times",
    "adjust_high_lats",
    "convert_times",
    "to_absolute_instant",
    "get_times",
]

LOGGER = logging.getLogger(__name__)

UNIX_EPOCH = date(1970, 1, 1)
J2000_DAYS = 10957.5  # 1970-01-01T00:00Z to 2000-01-01T12:00Z, in days.
MS_PER_DAY = 86_400_000
MS_PER_HOUR = 3_600_000

SUNRISE_ANGLE = 0.833  # Refraction plus solar semidiameter.
# Hour guess for the fallback next-day Fajr used by the Jafari midnight.
JAFARI_FAJR_HOUR = 29

SEED_TIMES: Dict[str, float] = {
    "fajr": 5,
    "sunrise": 6,
    "dhuhr": 12,
    "asr": 13,
    "sunset": 18,
    "maghrib": 18,
    "isha": 18,
    "midnight": 24,
}

EventTimes = Dict[str, float]


@dataclass(frozen=True)
class Location:
    """Observer position in degrees, east-positive longitude."""

    latitude: float
    longitude: float

    @classmethod
    def of(cls, value: Union["Location", Sequence[float]]) -> "Location":
        if isinstance(value, Location):
            return value
        latitude, longitude = value[0], value[1]
        return cls(float(latitude), float(longitude))


@dataclass(frozen=True)
class SunPosition:
    declination: float  # degrees
    equation: float  # equation of time, hours


@dataclass(frozen=True)
class PrayerTimes:
    """Formatted times of the eight daily events."""

    fajr: Any
    sunrise: Any
    dhuhr: Any
    asr: Any
    sunset: Any
    maghrib: Any
    isha: Any
    midnight: Any

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Degree-based trigonometry. Out-of-domain input yields NaN instead of raising.


def _sin(d: float) -> float:
    return math.sin(math.radians(d)) if math.isfinite(d) else math.nan


def _cos(d: float) -> float:
    return math.cos(math.radians(d)) if math.isfinite(d) else math.nan


def _tan(d: float) -> float:
    return math.tan(math.radians(d)) if math.isfinite(d) else math.nan


def _arcsin(x: float) -> float:
    return math.degrees(math.asin(x)) if -1.0 <= x <= 1.0 else math.nan


def _arccos(x: float) -> float:
    return math.degrees(math.acos(x)) if -1.0 <= x <= 1.0 else math.nan


def _arccot(x: float) -> float:
    if x == 0:
        return 90.0
    return math.degrees(math.atan(1.0 / x))


def _arctan2(y: float, x: float) -> float:
    return math.degrees(math.atan2(y, x))


def _mod(a: float, b: float) -> float:
    """Non-negative modulus."""

    if not math.isfinite(a):
        return math.nan
    return (a % b + b) % b


def _divide(a: float, b: float) -> float:
    if b == 0:
        return math.nan
    return a / b


def _days_since_epoch(day: date) -> int:
    return (day - UNIX_EPOCH).days


def sun_position(day: date, longitude: float, hour_guess: float) -> SunPosition:
    """Low-precision solar declination and equation of time.

    Parameters
    ----------
    day:
        Calendar date, anchored at UTC midnight.
    longitude:
        Observer longitude in degrees (east positive).
    hour_guess:
        Local solar hour at which the position is wanted.
    """

    d = _days_since_epoch(day) - J2000_DAYS + hour_guess / 24 - longitude / 360

    g = _mod(357.529 + 0.98560028 * d, 360)
    q = _mod(280.459 + 0.98564736 * d, 360)
    ecliptic = _mod(q + 1.915 * _sin(g) + 0.020 * _sin(2 * g), 360)
    obliquity = 23.439 - 0.00000036 * d

    right_ascension = _mod(
        _arctan2(_cos(obliquity) * _sin(ecliptic), _cos(ecliptic)) / 15, 24
    )
    return SunPosition(
        declination=_arcsin(_sin(obliquity) * _sin(ecliptic)),
        equation=q / 15 - right_ascension,
    )


class _DayGeometry:
    """Hour-angle solutions for one date and location."""

    def __init__(self, day: date, location: Location) -> None:
        self.day = day
        self.latitude = location.latitude
        self.longitude = location.longitude

    def sun(self, hour: float) -> SunPosition:
        return sun_position(self.day, self.longitude, hour)

    def mid_day(self, hour: float) -> float:
        return _mod(12 - self.sun(hour).equation, 24)

    def angle_time(self, angle: float, hour: float, direction: int = 1) -> float:
        declination = self.sun(hour).declination
        numerator = -_sin(angle) - _sin(self.latitude) * _sin(declination)
        denominator = _cos(self.latitude) * _cos(declination)
        offset = _arccos(_divide(numerator, denominator)) / 15
        return self.mid_day(hour) + offset * direction

    def asr_angle(self, factor: float, hour: float) -> float:
        declination = self.sun(hour).declination
        return -_arccot(factor + _tan(abs(self.latitude - declination)))


def _twilight(
    geometry: _DayGeometry,
    setting: AngleOrOffset,
    hour: float,
    direction: int,
    anchor: float,
) -> float:
    if isinstance(setting, Minutes):
        return anchor + direction * setting.minutes / 60
    return geometry.angle_time(setting.degrees, hour, direction)


def _process_times(
    times: EventTimes, geometry: _DayGeometry, params: CalculationParameters
) -> EventTimes:
    sunrise = geometry.angle_time(SUNRISE_ANGLE, times["sunrise"], -1)
    sunset = geometry.angle_time(SUNRISE_ANGLE, times["sunset"])
    maghrib = _twilight(geometry, params.maghrib, times["maghrib"], 1, sunset)
    return {
        "fajr": _twilight(geometry, params.fajr, times["fajr"], -1, sunrise),
        "sunrise": sunrise,
        "dhuhr": geometry.mid_day(times["dhuhr"]),
        "asr": geometry.angle_time(geometry.asr_angle(params.asr, times["asr"]), times["asr"]),
        "sunset": sunset,
        "maghrib": maghrib,
        "isha": _twilight(geometry, params.isha, times["isha"], 1, maghrib),
        "midnight": geometry.mid_day(times["midnight"]) + 12,
    }


def _night_portion(rule: HighLatsRule, setting: Angle) -> float:
    if rule is HighLatsRule.night_middle:
        return 0.5
    if rule is HighLatsRule.one_seventh:
        return 1 / 7
    return setting.degrees / 60


def adjust_high_lats(times: EventTimes, params: CalculationParameters) -> bool:
    """Clamp Fajr, Isha and Maghrib to a portion of the night.

    Only angle-based events are considered. Returns ``True`` when at least
    one event was replaced.
    """

    if params.high_lats is HighLatsRule.none:
        return False

    night = 24 + times["sunrise"] - times["sunset"]
    adjusted = False
    for event, anchor, direction in (
        ("fajr", "sunrise", -1),
        ("isha", "sunset", 1),
        ("maghrib", "sunset", 1),
    ):
        setting = getattr(params, event)
        if not isinstance(setting, Angle):
            continue
        portion = _night_portion(params.high_lats, setting) * night
        value = times[event]
        if math.isnan(value) or (value - times[anchor]) * direction > portion:
            times[event] = times[anchor] + direction * portion
            adjusted = True
    return adjusted


def _update_times(
    times: EventTimes,
    geometry: _DayGeometry,
    params: CalculationParameters,
    adjusted: bool,
) -> None:
    if isinstance(params.fajr, Minutes):
        times["fajr"] = times["sunrise"] - params.fajr.minutes / 60
    if isinstance(params.maghrib, Minutes):
        times["maghrib"] = times["sunset"] + params.maghrib.minutes / 60
    if isinstance(params.isha, Minutes):
        times["isha"] = times["maghrib"] + params.isha.minutes / 60
    if params.midnight is Midnight.jafari:
        if adjusted or isinstance(params.fajr, Minutes):
            next_fajr = times["fajr"] + 24
        else:
            next_fajr = geometry.angle_time(params.fajr.degrees, JAFARI_FAJR_HOUR, -1) + 24
        times["midnight"] = (times["sunset"] + next_fajr) / 2
    times["dhuhr"] += params.dhuhr.minutes / 60


def _tune_times(times: EventTimes, params: CalculationParameters) -> None:
    for event, minutes in params.tune.items():
        times[event] += minutes / 60


def compute_times(
    day: date, location: Location, params: CalculationParameters
) -> EventTimes:
    """Compute the eight events as fractional local solar hours.

    The seed guesses are refined ``params.iterations`` times, each pass
    recomputing every event from the previous pass. The results then go
    through the high-latitude adjustment, minute offsets, the Dhuhr offset
    and per-event tuning. Degenerate geometry leaves NaN values in place.
    """

    geometry = _DayGeometry(day, location)
    times = dict(SEED_TIMES)
    for _ in range(params.iterations):
        times = _process_times(times, geometry, params)

    adjusted = adjust_high_lats(times, params)
    _update_times(times, geometry, params, adjusted)
    _tune_times(times, params)
    return times


def _epoch_ms(hours: float, day: date, longitude: float) -> float:
    correction = hours - longitude / 15
    if not math.isfinite(correction):
        return math.nan
    return _days_since_epoch(day) * MS_PER_DAY + math.floor(MS_PER_HOUR * correction)


def convert_times(times: EventTimes, day: date, longitude: float) -> Dict[str, float]:
    """Map local solar hours onto epoch milliseconds (UTC)."""

    return {event: _epoch_ms(hours, day, longitude) for event, hours in times.items()}


def to_absolute_instant(
    hours: float, day: date, longitude: float, utc_offset: float = 0.0
) -> Optional[datetime]:
    """Return the instant of a solar hour as a datetime in ``UTC+utc_offset``.

    ``None`` is returned for non-finite hours.
    """

    epoch_ms = _epoch_ms(hours, day, longitude)
    if math.isnan(epoch_ms):
        return None
    return instant_from_ms(epoch_ms, utc_offset)


def _as_date(day: Union[date, datetime, Tuple[int, int, int]]) -> date:
    if isinstance(day, datetime):
        return day.date()
    if isinstance(day, date):
        return day
    year, month, dom = day
    return date(year, month, dom)


def get_times(
    day: Union[date, datetime, Tuple[int, int, int]],
    location: Union[Location, Sequence[float]],
    params: Optional[CalculationParameters] = None,
    *,
    utc_offset: Optional[float] = None,
    dst: Optional[float] = None,
    fmt: Any = None,
) -> PrayerTimes:
    """Compute, round and format the prayer times of one day.

    Parameters
    ----------
    day:
        Calendar date (a ``datetime`` contributes only its date).
    location:
        :class:`Location` or a ``(latitude, longitude)`` pair.
    params:
        Resolved parameters; defaults to the MWL method.
    utc_offset, dst, fmt:
        Optional overrides of the matching parameter fields.
    """

    params = params if params is not None else resolve()
    overrides: Dict[str, Any] = {}
    if utc_offset is not None:
        overrides["utc_offset"] = utc_offset
    if dst is not None:
        overrides["dst"] = dst
    if fmt is not None:
        overrides["format"] = fmt
    if overrides:
        params = params.replace(**overrides)

    try:
        anchor = _as_date(day)
    except (ValueError, TypeError, OverflowError) as exc:
        LOGGER.warning(json.dumps({"event": "date_invalid", "date": repr(day), "error": str(exc)}))
        return PrayerTimes(**{event: PLACEHOLDER for event in EVENTS})
    position = Location.of(location)
    hours = compute_times(anchor, position, params)
    instants = convert_times(hours, anchor, position.longitude)
    values = {
        event: format_time(
            round_time(instants[event], params.rounding),
            params.format,
            params.total_offset,
        )
        for event in EVENTS
    }
    LOGGER.debug(
        json.dumps(
            {
                "event": "times_computed",
                "date": anchor.isoformat(),
                "lat": position.latitude,
                "lon": position.longitude,
                "missing": sorted(e for e, v in instants.items() if math.isnan(v)),
            }
        )
    )
    return PrayerTimes(**values)
