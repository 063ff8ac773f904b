"""Minute rounding and output rendering for computed event instants."""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta, timezone
from typing import Any, Callable, Union

from .methods import Rounding

__all__ = ["PLACEHOLDER", "fixed_offset", "instant_from_ms", "round_time", "format_time"]

PLACEHOLDER = "-----"

MS_PER_MINUTE = 60_000

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def fixed_offset(hours: float) -> timezone:
    """Return a fixed-offset zone ``UTC+hours``."""

    if hours == 0:
        return UTC
    return timezone(timedelta(hours=hours))


def instant_from_ms(epoch_ms: float, utc_offset: float = 0.0) -> datetime:
    """Convert epoch milliseconds into an aware datetime in ``UTC+utc_offset``."""

    return (_EPOCH + timedelta(milliseconds=epoch_ms)).astimezone(fixed_offset(utc_offset))


def round_time(epoch_ms: float, rounding: Union[Rounding, str, None]) -> float:
    """Round *epoch_ms* to a whole minute according to *rounding*.

    ``nearest`` rounds half away from zero, ``up`` takes the ceiling and
    ``down`` the floor. Anything else, and non-finite input, passes through.
    """

    if rounding is None or not math.isfinite(epoch_ms):
        return epoch_ms
    policy = Rounding(rounding)
    minutes = epoch_ms / MS_PER_MINUTE
    if policy is Rounding.up:
        whole = math.ceil(minutes)
    elif policy is Rounding.down:
        whole = math.floor(minutes)
    elif policy is Rounding.nearest:
        whole = int(math.copysign(math.floor(abs(minutes) + 0.5), minutes))
    else:
        return epoch_ms
    return whole * MS_PER_MINUTE


def _clock(epoch_ms: float, fmt: str, utc_offset: float) -> str:
    local = instant_from_ms(epoch_ms, utc_offset)
    if fmt == "24h":
        return f"{local.hour:02d}:{local.minute:02d}"
    hour = local.hour % 12 or 12
    text = f"{hour}:{local.minute:02d}"
    if fmt == "12H":
        return text
    return f"{text} {'AM' if local.hour < 12 else 'PM'}"


def format_time(
    epoch_ms: float,
    fmt: Union[str, Callable[[float], Any]] = "24h",
    utc_offset: float = 0.0,
) -> Any:
    """Render one event instant.

    Parameters
    ----------
    epoch_ms:
        Milliseconds since the Unix epoch, possibly NaN.
    fmt:
        ``"24h"``, ``"12h"``, ``"12H"`` (12-hour without suffix), ``"x"``
        (epoch milliseconds), ``"X"`` (epoch seconds) or a callable receiving
        the epoch milliseconds.
    utc_offset:
        Hours added to UTC when rendering clock strings.
    """

    if not math.isfinite(epoch_ms):
        return PLACEHOLDER
    if callable(fmt):
        return fmt(epoch_ms)
    if fmt == "x":
        return math.floor(epoch_ms)
    if fmt == "X":
        return math.floor(epoch_ms / 1000)
    return _clock(epoch_ms, fmt, utc_offset)
