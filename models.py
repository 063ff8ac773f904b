"""Pydantic models for API requests and responses."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from praytime.methods import HighLatsRule, Method, Rounding


class TimeFormat(str, Enum):
    """Output forms supported by the ``/times`` endpoint."""

    h24 = "24h"
    h12 = "12h"
    h12_bare = "12H"
    millis = "x"
    seconds = "X"


class TimesQueryParams(BaseModel):
    """Validated query parameters for the ``/times`` endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude in degrees")
    lon: float = Field(..., ge=-180.0, le=180.0, description="Longitude in degrees")
    date_utc: date = Field(..., alias="date", description="Calendar date (YYYY-MM-DD)")
    method: Method = Field(Method.MWL, description="Calculation method")
    asr: str = Field("Standard", description="Standard, Hanafi or a shadow ratio")
    high_lats: HighLatsRule = Field(
        HighLatsRule.night_middle, description="High-latitude adjustment rule"
    )
    rounding: Rounding = Field(Rounding.nearest, description="Minute rounding policy")
    format: TimeFormat = Field(TimeFormat.h24, description="Output format")
    offset_hours: float = Field(0.0, description="Standard offset from UTC in hours")
    dst_hours: float = Field(0.0, description="Daylight-saving delta in hours")
    dhuhr_minutes: float = Field(0.0, description="Minutes added to Dhuhr")
    iterations: int = Field(1, ge=1, le=10, description="Solver passes")

    @field_validator("offset_hours", "dst_hours")
    def validate_offset_hours(cls, value: float) -> float:
        if not -14.0 <= value <= 14.0:
            raise ValueError("offset must be within ±14 hours")
        return value

    @model_validator(mode="after")
    def validate_total_offset(self) -> "TimesQueryParams":
        if abs(self.offset_hours + self.dst_hours) >= 24.0:
            raise ValueError("offset_hours plus dst_hours must stay within ±24 hours")
        return self


class TimesResponse(BaseModel):
    """Successful prayer-times response payload."""

    ok: bool = True
    date_utc: date = Field(..., description="Requested calendar date")
    latitude: float = Field(..., description="Latitude in degrees")
    longitude: float = Field(..., description="Longitude in degrees")
    method: Method = Field(..., description="Applied calculation method")
    format: TimeFormat = Field(..., description="Applied output format")
    utc_offset: float = Field(..., description="Offset plus DST used for clock strings")
    times: Dict[str, Union[str, int]] = Field(
        ..., description="Event name to formatted time or '-----' when undefined"
    )
    qibla: float = Field(..., description="Bearing to the Kaaba in degrees")


class SettingsSaveResponse(BaseModel):
    success: bool = True
    keys: int = Field(..., description="Number of keys written")


class HealthResponse(BaseModel):
    """Health-check response."""

    ok: bool = True
    settings_path: str
    settings_keys: Optional[int] = None


class ErrorResponse(BaseModel):
    """Error payload."""

    ok: bool = False
    code: str
    error: str


