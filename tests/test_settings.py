from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import httpx
import pytest

from praytime.methods import Angle, Minutes
from praytime.settings import (
    SettingsClient,
    SettingsError,
    SettingsStore,
    parameters_from_settings,
    resolve_settings_path,
)

BASE_URL = "http://settings.test"


@pytest.fixture
def store(tmp_path: Path):
    settings = SettingsStore(tmp_path / "nested" / "settings.db")
    yield settings
    settings.close()


def test_store_round_trip_and_upsert(store: SettingsStore) -> None:
    assert store.get_all() == {}
    store.save({"calculationMethod": "Makkah", "perIqamah": {"Fajr": "05:30"}, "latitude": 21.4})
    store.save({"calculationMethod": "ISNA"})
    assert store.get_all() == {
        "calculationMethod": "ISNA",
        "perIqamah": {"Fajr": "05:30"},
        "latitude": 21.4,
    }


def test_store_returns_raw_text_for_non_json(store: SettingsStore) -> None:
    store.save({"mosqueName": "Masjid"})
    with sqlite3.connect(store.path) as con:
        con.execute("INSERT INTO settings (key, value) VALUES (?, ?)", ("legacy", "not json"))
    assert store.get_all()["legacy"] == "not json"
    assert store.get_all()["mosqueName"] == "Masjid"


def test_store_reports_unusable_path(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x")
    broken = SettingsStore(blocker / "settings.db")
    with pytest.raises(SettingsError):
        broken.get_all()


def test_settings_path_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PRAYTIME_SETTINGS_DB", str(tmp_path / "s.db"))
    assert resolve_settings_path() == tmp_path / "s.db"
    monkeypatch.delenv("PRAYTIME_SETTINGS_DB")
    assert resolve_settings_path().name == "settings.db"


def _client(handler, cache: Path) -> SettingsClient:
    return SettingsClient(BASE_URL, cache, transport=httpx.MockTransport(handler))


def test_client_loads_from_service(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/api/get-settings"
        return httpx.Response(200, json={"calculationMethod": "Egypt"})

    assert _client(handler, tmp_path / "cache.json").load() == {"calculationMethod": "Egypt"}


def test_client_falls_back_to_cache_on_failure(tmp_path: Path) -> None:
    cache = tmp_path / "cache.json"
    cache.write_text(json.dumps({"calculationMethod": "Karachi"}))

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "down"})

    assert _client(handler, cache).load() == {"calculationMethod": "Karachi"}
    assert _client(handler, tmp_path / "missing.json").load() == {}


def test_client_falls_back_on_transport_error(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    assert _client(handler, tmp_path / "missing.json").load() == {}


def test_client_save_posts_json(tmp_path: Path) -> None:
    received = {}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/save-settings"
        received.update(json.loads(request.content))
        return httpx.Response(200, json={"success": True})

    cache = tmp_path / "cache.json"
    assert _client(handler, cache).save({"asrMethod": "Hanafi"}) is True
    assert received == {"asrMethod": "Hanafi"}
    assert not cache.exists()


def test_client_save_writes_cache_on_failure(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    cache = tmp_path / "deep" / "cache.json"
    assert _client(handler, cache).save({"asrMethod": "Hanafi"}) is False
    assert json.loads(cache.read_text()) == {"asrMethod": "Hanafi"}


def test_parameters_from_settings() -> None:
    params, location = parameters_from_settings(
        {
            "calculationMethod": "Makkah",
            "asrMethod": "Hanafi",
            "timeFormat": "12h",
            "latitude": 21.4225,
            "longitude": "39.8262",
        }
    )
    assert params.fajr == Angle(18.5)
    assert params.isha == Minutes(90.0)
    assert params.asr == 2.0
    assert params.format == "12h"
    assert (location.latitude, location.longitude) == (21.4225, 39.8262)


def test_parameters_from_empty_settings() -> None:
    params, location = parameters_from_settings({})
    assert params.fajr == Angle(18.0)
    assert params.isha == Angle(17.0)
    assert params.format == "24h"
    assert (location.latitude, location.longitude) == (0.0, 0.0)


def test_prayer_time_offsets_become_tuning() -> None:
    params, _ = parameters_from_settings(
        {"prayerTimeOffsets": {"Fajr": 2, "Dhuhr": 0, "Asr": "", "Isha": "-3"}}
    )
    assert dict(params.tune) == {"fajr": 2.0, "isha": -3.0}
