"""FastAPI application exposing prayer-time computations and settings storage."""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from models import (
    ErrorResponse,
    HealthResponse,
    SettingsSaveResponse,
    TimesQueryParams,
    TimesResponse,
)
from praytime import Location, get_times, resolve
from praytime.methods import Minutes
from praytime.schedule import qibla_direction
from praytime.settings import SettingsError, SettingsStore, resolve_settings_path

logging.basicConfig(level=logging.INFO, format="%(message)s")
LOGGER = logging.getLogger("prayer-api")

APP_DESCRIPTION = "Daily prayer times from low-precision solar astronomy"

SETTINGS_STORE: Optional[SettingsStore] = None


def _store() -> SettingsStore:
    global SETTINGS_STORE
    if SETTINGS_STORE is None:
        SETTINGS_STORE = SettingsStore(resolve_settings_path())
    return SETTINGS_STORE


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = _store()
    LOGGER.info(json.dumps({"event": "startup", "settings_path": str(store.path)}))
    try:
        yield
    finally:
        store.close()


app = FastAPI(
    title="Prayer Times API",
    description=APP_DESCRIPTION,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    payload = ErrorResponse(code=code, error=message)
    LOGGER.error(json.dumps({"event": "error", "code": code, "message": message}))
    return JSONResponse(status_code=status_code, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = ", ".join(error["msg"] for error in exc.errors())
    return _error_response(422, "validation_error", messages)


@app.exception_handler(ValidationError)
async def model_validation_exception_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    messages = ", ".join(error["msg"] for error in exc.errors())
    return _error_response(422, "validation_error", messages)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        message = detail.get("error") or detail.get("message") or str(detail)
    elif isinstance(detail, list):
        message = ", ".join(str(item) for item in detail)
    else:
        message = str(detail)
    return _error_response(exc.status_code, f"http_{exc.status_code}", message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception("Unhandled exception", exc_info=exc)
    return _error_response(500, "internal_error", "Unhandled server error")


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    store = _store()
    try:
        keys: Optional[int] = len(store.get_all())
    except SettingsError:
        keys = None
    return HealthResponse(ok=True, settings_path=str(store.path), settings_keys=keys)


@app.get(
    "/times",
    response_model=TimesResponse,
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def times_endpoint(params: TimesQueryParams = Depends()) -> TimesResponse:
    start_time = time.perf_counter()
    try:
        calculation = resolve(
            params.method,
            {
                "asr": params.asr,
                "high_lats": params.high_lats,
                "rounding": params.rounding,
                "format": params.format.value,
                "utc_offset": params.offset_hours,
                "dst": params.dst_hours,
                "dhuhr": Minutes(params.dhuhr_minutes),
                "iterations": params.iterations,
            },
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    result = get_times(params.date_utc, Location(params.lat, params.lon), calculation)
    duration_ms = (time.perf_counter() - start_time) * 1000.0

    response = TimesResponse(
        date_utc=params.date_utc,
        latitude=params.lat,
        longitude=params.lon,
        method=params.method,
        format=params.format,
        utc_offset=calculation.total_offset,
        times=result.as_dict(),
        qibla=round(qibla_direction(params.lat, params.lon), 4),
    )

    LOGGER.info(
        json.dumps(
            {
                "event": "times",
                "lat": params.lat,
                "lon": params.lon,
                "date": params.date_utc.isoformat(),
                "method": params.method.value,
                "duration_ms": round(duration_ms, 3),
            }
        )
    )
    return response


@app.get("/api/get-settings")
def get_settings() -> Dict[str, Any]:
    try:
        return _store().get_all()
    except SettingsError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@app.post(
    "/api/save-settings",
    response_model=SettingsSaveResponse,
    responses={422: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def save_settings(settings: Dict[str, Any] = Body(...)) -> SettingsSaveResponse:
    try:
        _store().save(settings)
    except SettingsError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return SettingsSaveResponse(success=True, keys=len(settings))
