from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from praytime.formatting import PLACEHOLDER
from praytime.schedule import (
    ScheduledEvent,
    imsak,
    iqamah_times,
    is_friday,
    jumuah_times,
    next_event,
    qibla_direction,
)

OFFSET = 3
TZ = timezone(timedelta(hours=OFFSET))
MINUTE = 60_000


def _ms(year: int, month: int, day: int, hour: int, minute: int) -> int:
    return int(datetime(year, month, day, hour, minute, tzinfo=TZ).timestamp() * 1000)


def _day(year: int, month: int, day: int) -> dict:
    return {
        "fajr": _ms(year, month, day, 5, 10),
        "sunrise": _ms(year, month, day, 6, 30),
        "dhuhr": _ms(year, month, day, 12, 20),
        "asr": _ms(year, month, day, 15, 40),
        "sunset": _ms(year, month, day, 18, 10),
        "maghrib": _ms(year, month, day, 18, 11),
        "isha": _ms(year, month, day, 19, 30),
        "midnight": _ms(year, month, day + 1, 0, 20),
    }


MONDAY = _day(2024, 3, 4)
TUESDAY = _day(2024, 3, 5)
FRIDAY = _day(2024, 3, 1)


def test_imsak_precedes_fajr() -> None:
    assert imsak(MONDAY["fajr"]) == MONDAY["fajr"] - 10 * MINUTE
    assert imsak(MONDAY["fajr"], 15) == MONDAY["fajr"] - 15 * MINUTE
    assert imsak(PLACEHOLDER) is None
    assert imsak(float("nan")) is None


def test_jumuah_times_follow_dhuhr() -> None:
    jumuah = jumuah_times(FRIDAY["dhuhr"], khutbah_delay=5, prayer_delay=30)
    assert jumuah == {
        "khutbah": FRIDAY["dhuhr"] + 5 * MINUTE,
        "prayer": FRIDAY["dhuhr"] + 30 * MINUTE,
    }
    assert jumuah_times(None) is None


def test_iqamah_override_and_delay() -> None:
    result = iqamah_times(
        MONDAY, delay=15, overrides={"Fajr": "05:30", "Asr": " ", "Isha": "bad"}, utc_offset=OFFSET
    )
    assert result["Fajr"] == _ms(2024, 3, 4, 5, 30)
    assert result["Dhuhr"] == MONDAY["dhuhr"] + 15 * MINUTE
    assert result["Asr"] == MONDAY["asr"] + 15 * MINUTE
    assert result["Isha"] == MONDAY["isha"] + 15 * MINUTE


def test_iqamah_without_delay_is_empty() -> None:
    result = iqamah_times(dict(MONDAY, asr=PLACEHOLDER), utc_offset=OFFSET)
    assert set(result) == {"Fajr", "Dhuhr", "Asr", "Maghrib", "Isha"}
    assert all(value is None for value in result.values())


def test_is_friday_uses_local_date() -> None:
    assert is_friday(FRIDAY["dhuhr"], OFFSET)
    assert not is_friday(MONDAY["dhuhr"], OFFSET)
    # 23:30 UTC on a Thursday is already Friday at UTC+3.
    thursday_late = int(datetime(2024, 2, 29, 23, 30, tzinfo=timezone.utc).timestamp() * 1000)
    assert is_friday(thursday_late, OFFSET)
    assert not is_friday(thursday_late, 0)


def test_next_event_picks_upcoming_prayer_today() -> None:
    now = _ms(2024, 3, 4, 13, 0)
    event = next_event(MONDAY, TUESDAY, now, utc_offset=OFFSET)
    assert event == ScheduledEvent(MONDAY["asr"], "Asr", "adhan")


def test_next_event_includes_iqamah() -> None:
    now = _ms(2024, 3, 4, 12, 25)
    event = next_event(MONDAY, TUESDAY, now, utc_offset=OFFSET, iqamah_delay=10)
    assert event == ScheduledEvent(MONDAY["dhuhr"] + 10 * MINUTE, "Dhuhr", "iqamah")


def test_next_event_rolls_over_to_tomorrow() -> None:
    now = _ms(2024, 3, 4, 22, 0)
    event = next_event(MONDAY, TUESDAY, now, utc_offset=OFFSET)
    assert event == ScheduledEvent(TUESDAY["fajr"], "Fajr", "adhan")


def test_next_event_ramadan_imsak() -> None:
    now = _ms(2024, 3, 4, 22, 0)
    event = next_event(MONDAY, TUESDAY, now, utc_offset=OFFSET, ramadan_mode=True)
    assert event == ScheduledEvent(TUESDAY["fajr"] - 10 * MINUTE, "Imsak", "imsak")


def test_next_event_friday_jumuah_replaces_prayers() -> None:
    now = _ms(2024, 3, 1, 11, 0)
    event = next_event(FRIDAY, _day(2024, 3, 2), now, utc_offset=OFFSET, friday_mode=True)
    assert event == ScheduledEvent(FRIDAY["dhuhr"], "Jumuah", "khutbah")

    later = _ms(2024, 3, 1, 12, 30)
    event = next_event(FRIDAY, _day(2024, 3, 2), later, utc_offset=OFFSET, friday_mode=True)
    assert event == ScheduledEvent(FRIDAY["dhuhr"] + 20 * MINUTE, "Jumuah", "prayer")


def test_next_event_none_when_nothing_left() -> None:
    empty = {event: PLACEHOLDER for event in MONDAY}
    assert next_event(empty, empty, _ms(2024, 3, 4, 12, 0)) is None


@pytest.mark.parametrize(
    "latitude, longitude, expected",
    [
        (51.5074, -0.1278, 119.0),
        (40.7128, -74.0060, 58.5),
        (-6.2088, 106.8456, 295.1),
    ],
)
def test_qibla_direction(latitude: float, longitude: float, expected: float) -> None:
    assert qibla_direction(latitude, longitude) == pytest.approx(expected, abs=0.5)
