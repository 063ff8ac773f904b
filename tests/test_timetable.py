from __future__ import annotations

import json
from pathlib import Path

import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

import timetable


def test_json_rows(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = timetable.main(
        [
            "--lat", "21.4225",
            "--lon", "39.8262",
            "--offset", "3",
            "--start", "2025-03-01",
            "--days", "2",
            "--json",
        ]
    )
    assert exit_code == 0
    rows = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [row["date"] for row in rows] == ["2025-03-01", "2025-03-02"]
    for row in rows:
        assert set(row) == {
            "date", "fajr", "sunrise", "dhuhr", "asr", "sunset", "maghrib", "isha", "midnight",
        }
        assert "12:00" <= row["dhuhr"] <= "12:40"


def test_table_output(capsys: pytest.CaptureFixture[str]) -> None:
    assert timetable.main(["--lat", "51.5", "--lon", "-0.12", "--start", "2025-06-01", "--days", "3"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split()[:2] == ["date", "fajr"]
    assert len(lines) == 4


def test_invalid_method_option_exits(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit):
        timetable.main(["--lat", "0", "--lon", "0", "--asr", "Shafii"])
    assert "asr" in capsys.readouterr().err
