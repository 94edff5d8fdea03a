"""Advanced types and duration helpers."""

from __future__ import annotations

import re
from datetime import timedelta
from pathlib import Path
from typing import Union

from typing_extensions import TypeAlias

import localactivity.exceptions

DataSource: TypeAlias = Union[
    Path, str, bytes
]  # str represents a file contents, bytes represents raw data

DurationLike: TypeAlias = Union[timedelta, int, float, str]

_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(h|ms|us|m|s)")

_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
    "us": timedelta(microseconds=1),
}


def parse_duration(value: DurationLike) -> timedelta:
    """Convert a duration-like value into a :py:class:`datetime.timedelta`.

    Accepts a timedelta as-is, an int or float as seconds, or a string made of
    one or more ``<number><unit>`` parts (e.g. ``"1h30m"``, ``"1.5s"``,
    ``"250ms"``). A leading ``-`` negates the whole value.

    Raises:
        InvalidArgumentError: If the value cannot be interpreted.
    """
    if isinstance(value, timedelta):
        return value
    # bool is an int subclass but never a sensible duration
    if isinstance(value, bool):
        raise localactivity.exceptions.InvalidArgumentError(
            f"Invalid duration: {value!r}"
        )
    if isinstance(value, (int, float)):
        return _to_timedelta(value, value)
    if not isinstance(value, str):
        raise TypeError(f"Expected duration-like value, got {type(value).__name__}")

    text = value.strip()
    negative = text.startswith("-")
    if negative:
        text = text[1:]
    if not text:
        raise localactivity.exceptions.InvalidArgumentError(
            f"Invalid duration: {value!r}"
        )
    # Bare number is seconds
    if _NUMBER.fullmatch(text):
        seconds = float(text)
        return _to_timedelta(-seconds if negative else seconds, value)

    total = timedelta()
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        try:
            total += _UNITS[match.group(2)] * float(match.group(1))
        except OverflowError as err:
            raise localactivity.exceptions.InvalidArgumentError(
                f"Invalid duration: {value!r}"
            ) from err
        pos = match.end()
    if pos != len(text):
        raise localactivity.exceptions.InvalidArgumentError(
            f"Invalid duration: {value!r}"
        )
    return -total if negative else total


def _to_timedelta(seconds: float, value: DurationLike) -> timedelta:
    # Infinite, NaN and out of range values can't be represented
    try:
        return timedelta(seconds=seconds)
    except (OverflowError, ValueError) as err:
        raise localactivity.exceptions.InvalidArgumentError(
            f"Invalid duration: {value!r}"
        ) from err


def format_duration(value: timedelta) -> str:
    """Render a timedelta in the string form :py:func:`parse_duration` reads.

    Whole hours and minutes are split out, the remainder is rendered in
    seconds, e.g. ``timedelta(minutes=90, seconds=1.5)`` becomes
    ``"1h30m1.5s"``.
    """
    if value < timedelta():
        return "-" + format_duration(-value)
    if not value:
        return "0s"
    micros = value // timedelta(microseconds=1)
    hours, micros = divmod(micros, 3_600_000_000)
    minutes, micros = divmod(micros, 60_000_000)
    out = ""
    if hours:
        out += f"{hours}h"
    if minutes:
        out += f"{minutes}m"
    if micros:
        seconds, frac = divmod(micros, 1_000_000)
        if frac:
            out += f"{seconds}.{frac:06d}".rstrip("0") + "s"
        else:
            out += f"{seconds}s"
    return out
