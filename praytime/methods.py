"""Calculation methods and parameter resolution for prayer-time computations."""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Union

__all__ = [
    "Angle",
    "Minutes",
    "AngleOrOffset",
    "Method",
    "Midnight",
    "HighLatsRule",
    "Rounding",
    "CalculationParameters",
    "EVENTS",
    "METHOD_PRESETS",
    "resolve",
]

LOGGER = logging.getLogger(__name__)

EVENTS = ("fajr", "sunrise", "dhuhr", "asr", "sunset", "maghrib", "isha", "midnight")

_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+))\s*(min)?\s*$")


@dataclass(frozen=True)
class Angle:
    """Sun depression below the horizon, in degrees."""

    degrees: float

    @property
    def value(self) -> float:
        return self.degrees


@dataclass(frozen=True)
class Minutes:
    """Fixed offset in minutes after a reference event."""

    minutes: float

    @property
    def value(self) -> float:
        return self.minutes


AngleOrOffset = Union[Angle, Minutes]


class Method(str, Enum):
    """Enumeration of the built-in calculation methods."""

    MWL = "MWL"
    ISNA = "ISNA"
    Egypt = "Egypt"
    Makkah = "Makkah"
    Karachi = "Karachi"
    Tehran = "Tehran"
    Jafari = "Jafari"
    France = "France"
    Russia = "Russia"
    Singapore = "Singapore"


class Midnight(str, Enum):
    standard = "Standard"
    jafari = "Jafari"


class HighLatsRule(str, Enum):
    """Policies bounding twilight events when the geometry breaks down."""

    none = "None"
    night_middle = "NightMiddle"
    one_seventh = "OneSeventh"
    angle_based = "AngleBased"


class Rounding(str, Enum):
    nearest = "nearest"
    up = "up"
    down = "down"
    none = "none"


ASR_FACTORS: Dict[str, float] = {"Standard": 1.0, "Hanafi": 2.0}

FORMATS = ("24h", "12h", "12H", "x", "X")

# Each preset only lists what differs from the method defaults.
METHOD_PRESETS: Dict[Method, Dict[str, Any]] = {
    Method.MWL: {"fajr": 18, "isha": 17},
    Method.ISNA: {"fajr": 15, "isha": 15},
    Method.Egypt: {"fajr": 19.5, "isha": 17.5},
    Method.Makkah: {"fajr": 18.5, "isha": "90 min"},
    Method.Karachi: {"fajr": 18, "isha": 18},
    Method.Tehran: {"fajr": 17.7, "maghrib": 4.5, "midnight": "Jafari"},
    Method.Jafari: {"fajr": 16, "maghrib": 4, "midnight": "Jafari"},
    Method.France: {"fajr": 12, "isha": 12},
    Method.Russia: {"fajr": 16, "isha": 15},
    Method.Singapore: {"fajr": 20, "isha": 18},
}

METHOD_DEFAULTS: Dict[str, Any] = {
    "fajr": 18,
    "isha": 14,
    "maghrib": "1 min",
    "midnight": "Standard",
}


def _parse_number(value: Any, name: str) -> tuple[float, bool]:
    """Return ``(number, is_minutes)`` for a numeric or ``"<n> min"`` value."""

    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number or '<n> min', got {value!r}")
    if isinstance(value, (int, float)):
        return float(value), False
    match = _NUMBER.match(str(value))
    if match is None:
        raise ValueError(f"{name} must be a number or '<n> min', got {value!r}")
    return float(match.group(1)), match.group(2) is not None


def parse_angle_or_offset(value: Any, name: str = "value") -> AngleOrOffset:
    if isinstance(value, (Angle, Minutes)):
        return value
    number, is_minutes = _parse_number(value, name)
    return Minutes(number) if is_minutes else Angle(number)


def parse_minutes(value: Any, name: str = "value") -> Minutes:
    if isinstance(value, Minutes):
        return value
    if isinstance(value, Angle):
        raise ValueError(f"{name} must be expressed in minutes")
    number, _ = _parse_number(value, name)
    return Minutes(number)


def parse_asr(value: Any) -> float:
    """Map an Asr juristic method or a custom shadow ratio to a float factor."""

    if isinstance(value, str) and value in ASR_FACTORS:
        return ASR_FACTORS[value]
    number, is_minutes = _parse_number(value, "asr")
    if is_minutes:
        raise ValueError("asr must be 'Standard', 'Hanafi' or a shadow ratio")
    return number


def parse_utc_offset(value: Any) -> float:
    """Return an offset in hours; magnitudes of 16 or more are read as minutes."""

    number, _ = _parse_number(value, "utc_offset")
    if abs(number) >= 16:
        return number / 60.0
    return number


def _parse_tune(value: Optional[Mapping[str, Any]]) -> Mapping[str, float]:
    tune: Dict[str, float] = {}
    for key, minutes in (value or {}).items():
        event = str(key).lower()
        if event not in EVENTS:
            raise ValueError(f"Unknown event in tune: {key!r}")
        tune[event] = parse_minutes(minutes, f"tune[{key}]").minutes
    return MappingProxyType(tune)


def _parse_format(value: Any) -> Union[str, Callable[[float], Any]]:
    if callable(value):
        return value
    if value not in FORMATS:
        raise ValueError(f"format must be one of {', '.join(FORMATS)} or a callable")
    return value


def _parse_rounding(value: Any) -> Rounding:
    if value is None:
        return Rounding.none
    return Rounding(value)


_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "fajr": lambda v: parse_angle_or_offset(v, "fajr"),
    "isha": lambda v: parse_angle_or_offset(v, "isha"),
    "maghrib": lambda v: parse_angle_or_offset(v, "maghrib"),
    "dhuhr": lambda v: parse_minutes(v, "dhuhr"),
    "asr": parse_asr,
    "midnight": Midnight,
    "high_lats": lambda v: HighLatsRule.none if v is None else HighLatsRule(v),
    "tune": _parse_tune,
    "rounding": _parse_rounding,
    "format": _parse_format,
    "utc_offset": parse_utc_offset,
    "dst": lambda v: _parse_number(v, "dst")[0],
    "iterations": int,
}


@dataclass(frozen=True)
class CalculationParameters:
    """Immutable, fully resolved configuration for one computation."""

    fajr: AngleOrOffset = Angle(18.0)
    isha: AngleOrOffset = Angle(14.0)
    maghrib: AngleOrOffset = Minutes(1.0)
    dhuhr: Minutes = Minutes(0.0)
    asr: float = 1.0
    midnight: Midnight = Midnight.standard
    high_lats: HighLatsRule = HighLatsRule.night_middle
    tune: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    rounding: Rounding = Rounding.nearest
    iterations: int = 1
    format: Union[str, Callable[[float], Any]] = "24h"
    utc_offset: float = 0.0
    dst: float = 0.0

    def __post_init__(self) -> None:
        if self.iterations < 1:
            raise ValueError("iterations must be at least 1")
        if not isinstance(self.tune, MappingProxyType):
            object.__setattr__(self, "tune", _parse_tune(self.tune))

    def replace(self, **overrides: Any) -> "CalculationParameters":
        """Return a copy with *overrides* parsed and applied."""

        return dataclasses.replace(self, **_parse_overrides(overrides))

    @property
    def total_offset(self) -> float:
        """Standard UTC offset plus the DST delta, in hours."""

        return self.utc_offset + self.dst


def _parse_overrides(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    parsed: Dict[str, Any] = {}
    for name, value in overrides.items():
        try:
            parser = _PARSERS[name]
        except KeyError as exc:
            raise ValueError(f"Unknown calculation parameter: {name}") from exc
        parsed[name] = parser(value)
    return parsed


def resolve(
    method: Union[Method, str, CalculationParameters, None] = Method.MWL,
    overrides: Optional[Mapping[str, Any]] = None,
) -> CalculationParameters:
    """Merge defaults, a method preset and *overrides* into one parameter set.

    Parameters
    ----------
    method:
        A :class:`Method`, its name, or a complete
        :class:`CalculationParameters` used as a custom base.
    overrides:
        Partial parameter values; tagged strings such as ``"90 min"`` are
        parsed here and nowhere else.

    Unknown method names do not raise. They resolve to the defaults plus
    *overrides*.
    """

    if isinstance(method, CalculationParameters):
        base = method
    else:
        base = CalculationParameters().replace(**METHOD_DEFAULTS)
        preset = _lookup_preset(method)
        if preset is not None:
            base = base.replace(**preset)
        elif method is not None:
            LOGGER.warning(json.dumps({"event": "method_unknown", "method": str(method)}))
    if overrides:
        base = base.replace(**overrides)
    return base


def _lookup_preset(method: Union[Method, str, None]) -> Optional[Dict[str, Any]]:
    if method is None:
        return None
    try:
        return METHOD_PRESETS[Method(method)]
    except ValueError:
        return None
