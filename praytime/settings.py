"""Persistence of display settings and their mapping onto calculation parameters."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx

from .astro import Location
from .methods import CalculationParameters, resolve

__all__ = [
    "SettingsError",
    "SettingsStore",
    "SettingsClient",
    "resolve_settings_path",
    "parameters_from_settings",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path.home() / ".praytime" / "settings.db"
DEFAULT_CACHE_PATH = Path.home() / ".praytime" / "settings-cache.json"

_SQL = {
    "init": """
CREATE TABLE IF NOT EXISTS settings (
  key TEXT PRIMARY KEY,
  value TEXT
);
""",
    "all": "SELECT key, value FROM settings",
    "upsert": (
        "INSERT INTO settings (key, value) VALUES (?, ?)"
        " ON CONFLICT(key) DO UPDATE SET value=excluded.value"
    ),
}


class SettingsError(RuntimeError):
    """Raised when the settings database cannot be read or written."""


def resolve_settings_path() -> Path:
    """Return the settings database path, honouring ``PRAYTIME_SETTINGS_DB``."""

    override = os.environ.get("PRAYTIME_SETTINGS_DB")
    if override:
        return Path(override).expanduser()
    return DEFAULT_SETTINGS_PATH


class SettingsStore:
    """Key-value settings table; every value is stored JSON-encoded."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self._lock = Lock()
        self._connection: Optional[sqlite3.Connection] = None

    def _connect(self) -> sqlite3.Connection:
        if self._connection is None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                con = sqlite3.connect(str(self.path), check_same_thread=False)
                con.executescript(_SQL["init"])
            except (OSError, sqlite3.Error) as exc:
                raise SettingsError(f"Cannot open settings database {self.path}: {exc}") from exc
            self._connection = con
            LOGGER.info(json.dumps({"event": "settings_opened", "path": str(self.path)}))
        return self._connection

    def get_all(self) -> Dict[str, Any]:
        with self._lock:
            try:
                rows = self._connect().execute(_SQL["all"]).fetchall()
            except sqlite3.Error as exc:
                raise SettingsError(f"Failed to read settings: {exc}") from exc
        settings: Dict[str, Any] = {}
        for key, value in rows:
            try:
                settings[key] = json.loads(value)
            except (TypeError, ValueError):
                settings[key] = value
        return settings

    def save(self, settings: Mapping[str, Any]) -> None:
        """Upsert every key of *settings*."""

        rows = [(str(key), json.dumps(value)) for key, value in settings.items()]
        with self._lock:
            con = self._connect()
            try:
                with con:
                    con.executemany(_SQL["upsert"], rows)
            except sqlite3.Error as exc:
                raise SettingsError(f"Failed to save settings: {exc}") from exc
        LOGGER.info(json.dumps({"event": "settings_saved", "keys": sorted(k for k, _ in rows)}))

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


class SettingsClient:
    """HTTP client for a settings service with a local JSON cache fallback."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        cache_path: Optional[Path | str] = None,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = (base_url or os.environ.get("PRAYTIME_SETTINGS_URL", "")).rstrip("/")
        self.cache_path = Path(
            cache_path or os.environ.get("PRAYTIME_CACHE_PATH", str(DEFAULT_CACHE_PATH))
        ).expanduser()
        self._transport = transport
        self._timeout = timeout

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            transport=self._transport,
            timeout=httpx.Timeout(self._timeout),
        )

    def _read_cache(self) -> Dict[str, Any]:
        try:
            return json.loads(self.cache_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            LOGGER.warning(
                json.dumps({"event": "settings_cache_unreadable", "error": str(exc)})
            )
            return {}

    def _write_cache(self, settings: Mapping[str, Any]) -> None:
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        self.cache_path.write_text(json.dumps(dict(settings)), encoding="utf-8")

    def load(self) -> Dict[str, Any]:
        """Fetch all settings, falling back to the local cache on any failure."""

        try:
            with self._client() as client:
                response = client.get("/api/get-settings")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning(
                json.dumps({"event": "settings_load_fallback", "error": str(exc)})
            )
            return self._read_cache()
        LOGGER.info(json.dumps({"event": "settings_loaded", "keys": len(data)}))
        return data

    def save(self, settings: Mapping[str, Any]) -> bool:
        """Post *settings*; on failure store them in the local cache instead.

        Returns ``True`` when the service accepted the settings.
        """

        try:
            with self._client() as client:
                response = client.post("/api/save-settings", json=dict(settings))
                response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.warning(
                json.dumps({"event": "settings_save_fallback", "error": str(exc)})
            )
            self._write_cache(settings)
            return False
        LOGGER.info(json.dumps({"event": "settings_posted", "keys": len(settings)}))
        return True


def parameters_from_settings(
    settings: Mapping[str, Any],
) -> Tuple[CalculationParameters, Location]:
    """Build calculation parameters and a location from persisted settings."""

    overrides: Dict[str, Any] = {
        "asr": settings.get("asrMethod") or "Standard",
        "format": settings.get("timeFormat") or "24h",
    }
    offsets = settings.get("prayerTimeOffsets") or {}
    tune = {str(prayer).lower(): minutes for prayer, minutes in offsets.items() if minutes}
    if tune:
        overrides["tune"] = tune
    params = resolve(settings.get("calculationMethod") or "MWL", overrides)
    location = Location(
        float(settings.get("latitude") or 0.0),
        float(settings.get("longitude") or 0.0),
    )
    return params, location
