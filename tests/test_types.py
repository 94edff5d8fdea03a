from datetime import timedelta

import pytest

from localactivity.exceptions import InvalidArgumentError
from localactivity.types import format_duration, parse_duration


@pytest.mark.parametrize(
    "value,expected",
    [
        (timedelta(seconds=3), timedelta(seconds=3)),
        (5, timedelta(seconds=5)),
        (1.5, timedelta(seconds=1.5)),
        ("10", timedelta(seconds=10)),
        ("10s", timedelta(seconds=10)),
        ("1.5s", timedelta(seconds=1.5)),
        ("250ms", timedelta(milliseconds=250)),
        ("20us", timedelta(microseconds=20)),
        ("1h30m", timedelta(minutes=90)),
        ("1h2m3s", timedelta(hours=1, minutes=2, seconds=3)),
        (" 2m ", timedelta(minutes=2)),
        ("-5s", timedelta(seconds=-5)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "-", "s", "10x", "1h 2m", "ten seconds", True])
def test_parse_duration_invalid(value):
    with pytest.raises(InvalidArgumentError, match="Invalid duration"):
        parse_duration(value)


def test_parse_duration_wrong_type():
    with pytest.raises(TypeError):
        parse_duration([1])  # type: ignore


@pytest.mark.parametrize(
    "value,expected",
    [
        (timedelta(0), "0s"),
        (timedelta(seconds=10), "10s"),
        (timedelta(milliseconds=1500), "1.5s"),
        (timedelta(minutes=90, seconds=1.5), "1h30m1.5s"),
        (timedelta(hours=2), "2h"),
        (timedelta(seconds=-3), "-3s"),
    ],
)
def test_format_duration(value, expected):
    assert format_duration(value) == expected
    assert parse_duration(format_duration(value)) == value


@pytest.mark.parametrize(
    "value", [float("inf"), float("-inf"), float("nan"), "99999999999h", "9" * 400]
)
def test_parse_duration_out_of_range(value):
    with pytest.raises(InvalidArgumentError, match="Invalid duration") as err:
        parse_duration(value)
    assert isinstance(err.value.cause, (OverflowError, ValueError))
