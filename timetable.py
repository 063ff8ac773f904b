"""Print a prayer timetable for a span of days.

Usage:
    python timetable.py --lat 21.4225 --lon 39.8262 --offset 3 [--start 2025-03-01] [--days 30]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, date, datetime, timedelta
from typing import List, Optional, Sequence

from praytime import Location, get_times, resolve
from praytime.methods import EVENTS, CalculationParameters, Method


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print daily prayer times for a date span.")
    parser.add_argument("--lat", type=float, required=True, help="latitude in degrees")
    parser.add_argument("--lon", type=float, required=True, help="longitude in degrees, east positive")
    parser.add_argument("--start", type=parse_date, default=None, help="first day, YYYY-MM-DD (default: today, UTC)")
    parser.add_argument("--days", type=int, default=7, help="number of days to print")
    parser.add_argument("--method", default=Method.MWL.value, help="calculation method name")
    parser.add_argument("--asr", default="Standard", help="Standard, Hanafi or a shadow ratio")
    parser.add_argument("--high-lats", default="NightMiddle", help="None, NightMiddle, OneSeventh or AngleBased")
    parser.add_argument("--offset", type=float, default=0.0, help="standard UTC offset in hours")
    parser.add_argument("--dst", type=float, default=0.0, help="daylight-saving delta in hours")
    parser.add_argument("--format", default="24h", help="24h, 12h, 12H, x or X")
    parser.add_argument("--json", action="store_true", help="emit one JSON object per day")
    return parser


def timetable_rows(
    start: date, days: int, location: Location, params: CalculationParameters
) -> List[dict]:
    rows = []
    for index in range(days):
        day = start + timedelta(days=index)
        times = get_times(day, location, params)
        rows.append({"date": day.isoformat(), **times.as_dict()})
    return rows


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.days < 1:
        parser.error("--days must be at least 1")
    try:
        params = resolve(
            args.method,
            {
                "asr": args.asr,
                "high_lats": args.high_lats,
                "utc_offset": args.offset,
                "dst": args.dst,
                "format": args.format,
            },
        )
    except ValueError as exc:
        parser.error(str(exc))

    start = args.start or datetime.now(UTC).date()
    rows = timetable_rows(start, args.days, Location(args.lat, args.lon), params)

    if args.json:
        for row in rows:
            print(json.dumps(row))
        return 0

    header = ["date", *EVENTS]
    widths = [max(len(str(row[key])) for row in rows + [dict(zip(header, header))]) for key in header]
    print("  ".join(name.ljust(width) for name, width in zip(header, widths)))
    for row in rows:
        print("  ".join(str(row[key]).ljust(width) for key, width in zip(header, widths)))
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format="%(message)s")
    sys.exit(main())
