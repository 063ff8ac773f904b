"""Display-side schedule helpers built on computed prayer instants.

All instants are epoch milliseconds as produced with the ``"x"`` format.
Missing or non-finite instants are skipped rather than raising.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .formatting import MS_PER_MINUTE, instant_from_ms

__all__ = [
    "PRAYERS",
    "ScheduledEvent",
    "imsak",
    "jumuah_times",
    "iqamah_times",
    "is_friday",
    "next_event",
    "qibla_direction",
]

PRAYERS = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")

KAABA_LATITUDE = 21.4225
KAABA_LONGITUDE = 39.8262


@dataclass(frozen=True)
class ScheduledEvent:
    time: int
    prayer: str
    kind: str  # adhan, iqamah, imsak, khutbah or prayer


def _instant(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return int(value)


def imsak(fajr_ms: Any, offset_minutes: float = 10) -> Optional[int]:
    """Imsak is a fixed number of minutes before Fajr."""

    fajr = _instant(fajr_ms)
    if fajr is None:
        return None
    return fajr - int(offset_minutes * MS_PER_MINUTE)


def jumuah_times(
    dhuhr_ms: Any, khutbah_delay: int = 0, prayer_delay: int = 20
) -> Optional[Dict[str, int]]:
    dhuhr = _instant(dhuhr_ms)
    if dhuhr is None:
        return None
    return {
        "khutbah": dhuhr + khutbah_delay * MS_PER_MINUTE,
        "prayer": dhuhr + prayer_delay * MS_PER_MINUTE,
    }


def _parse_clock(text: str) -> Optional[tuple[int, int]]:
    parts = text.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        return None
    return hour, minute


def iqamah_times(
    times: Mapping[str, Any],
    delay: float = 0,
    overrides: Optional[Mapping[str, str]] = None,
    utc_offset: float = 0.0,
) -> Dict[str, Optional[int]]:
    """Iqamah instant per prayer.

    A non-empty ``"HH:MM"`` override pins the iqamah to that local clock time
    on the adhan's local date; otherwise a positive *delay* (minutes) is added
    to the adhan. Prayers with neither get ``None``.
    """

    overrides = overrides or {}
    result: Dict[str, Optional[int]] = {}
    for prayer in PRAYERS:
        adhan = _instant(times.get(prayer.lower()))
        if adhan is None:
            result[prayer] = None
            continue
        clock = _parse_clock(overrides.get(prayer) or "")
        if clock is not None:
            local = instant_from_ms(adhan, utc_offset)
            pinned = local.replace(hour=clock[0], minute=clock[1], second=0, microsecond=0)
            result[prayer] = int(pinned.timestamp() * 1000)
        elif delay and delay > 0:
            result[prayer] = adhan + int(delay * MS_PER_MINUTE)
        else:
            result[prayer] = None
    return result


def is_friday(epoch_ms: int, utc_offset: float = 0.0) -> bool:
    return instant_from_ms(epoch_ms, utc_offset).weekday() == 4


def _day_events(
    times: Mapping[str, Any],
    *,
    utc_offset: float,
    iqamah_delay: float,
    iqamah_overrides: Optional[Mapping[str, str]],
    friday_mode: bool,
    ramadan_mode: bool,
    imsak_offset: float,
    khutbah_delay: int,
    jumuah_delay: int,
) -> List[ScheduledEvent]:
    events: List[ScheduledEvent] = []
    if ramadan_mode:
        start = imsak(times.get("fajr"), imsak_offset)
        if start is not None:
            events.append(ScheduledEvent(start, "Imsak", "imsak"))

    dhuhr = _instant(times.get("dhuhr"))
    if friday_mode and dhuhr is not None and is_friday(dhuhr, utc_offset):
        jumuah = jumuah_times(dhuhr, khutbah_delay, jumuah_delay)
        events.append(ScheduledEvent(jumuah["khutbah"], "Jumuah", "khutbah"))
        events.append(ScheduledEvent(jumuah["prayer"], "Jumuah", "prayer"))
        return events

    iqamah = iqamah_times(times, iqamah_delay, iqamah_overrides, utc_offset)
    for prayer in PRAYERS:
        adhan = _instant(times.get(prayer.lower()))
        if adhan is not None:
            events.append(ScheduledEvent(adhan, prayer, "adhan"))
        if iqamah[prayer] is not None:
            events.append(ScheduledEvent(iqamah[prayer], prayer, "iqamah"))
    return events


def next_event(
    today: Mapping[str, Any],
    tomorrow: Mapping[str, Any],
    now_ms: int,
    *,
    utc_offset: float = 0.0,
    iqamah_delay: float = 0,
    iqamah_overrides: Optional[Mapping[str, str]] = None,
    friday_mode: bool = False,
    ramadan_mode: bool = False,
    imsak_offset: float = 10,
    khutbah_delay: int = 0,
    jumuah_delay: int = 20,
) -> Optional[ScheduledEvent]:
    """Return the earliest upcoming event.

    Events of *today* that already passed are ignored; *tomorrow* is only
    consulted once nothing is left today. On Fridays with ``friday_mode`` the
    Jumu'ah khutbah and prayer replace the regular prayers.
    """

    options = dict(
        utc_offset=utc_offset,
        iqamah_delay=iqamah_delay,
        iqamah_overrides=iqamah_overrides,
        friday_mode=friday_mode,
        ramadan_mode=ramadan_mode,
        imsak_offset=imsak_offset,
        khutbah_delay=khutbah_delay,
        jumuah_delay=jumuah_delay,
    )
    events: Iterable[ScheduledEvent] = [
        event for event in _day_events(today, **options) if event.time >= now_ms
    ]
    if not events:
        events = _day_events(tomorrow, **options)
    return min(events, key=lambda event: event.time, default=None)


def qibla_direction(latitude: float, longitude: float) -> float:
    """Initial great-circle bearing to the Kaaba, degrees clockwise from north."""

    lat = math.radians(latitude)
    kaaba_lat = math.radians(KAABA_LATITUDE)
    delta_lon = math.radians(KAABA_LONGITUDE - longitude)
    y = math.sin(delta_lon)
    x = math.cos(lat) * math.tan(kaaba_lat) - math.sin(lat) * math.cos(delta_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360
